# upgrade-manager

A governed upgrade workflow for deployed programs: upgrades are proposed by
members of a multisig, approved until a threshold is met, held behind a
48-hour timelock, and only then executed. Accounts written by the old version
can be migrated in tracked batches.

The package has two halves:

- `upgrade_manager.chain` models the upgrade program in memory: multisig
  configuration, upgrade proposals and their status, account versions, the
  events each instruction emits and the error codes it raises.
- `upgrade_manager.backend` is an HTTP service that records proposals,
  approvals, timelocks and migration jobs in a SQLite database and exposes
  them over a small JSON API.

## Installing

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## The upgrade rules

`upgrade_manager.chain.program.UpgradeProgram` keeps the multisig, proposals
and account versions in dictionaries and offers one method per instruction:
`initialize_multisig`, `propose_upgrade`, `approve_upgrade`,
`execute_upgrade`, `cancel_upgrade`, `migrate_account`, `pause_system` and
`resume_system`. Emitted events (from `upgrade_manager.chain.events`) are
appended to `program.events`, and pause/resume messages to `program.logs`.
The clock can be supplied as a callable returning Unix seconds:

```python
from upgrade_manager.chain.program import UpgradeProgram
from upgrade_manager.chain.state import Pubkey

now = 1_000_000
program = UpgradeProgram(clock=lambda: now)
members = [Pubkey.new_unique() for _ in range(5)]
program.initialize_multisig(members[0], members, 3)

buffer = Pubkey.new_unique()
proposal_id = program.propose_upgrade(members[0], buffer, "Fix fee rounding")
for member in members[:3]:
    program.approve_upgrade(member, proposal_id)   # the third starts the timelock

now += 172800                                      # 48 hours later
program.execute_upgrade(members[0], proposal_id, Pubkey.new_unique(), buffer)
```

The rules enforced:

- a multisig holds at most 10 members and a threshold between 1 and the
  member count;
- only members may propose, approve, cancel, pause or resume;
- descriptions are limited to 500 bytes of UTF-8;
- a member may approve a proposal only once, and only while it is
  `Proposed` or `Approved`;
- reaching the threshold activates a 48-hour timelock; execution needs an
  active timelock that has run out, enough approvals and the proposal's own
  buffer;
- executed or already cancelled proposals cannot be cancelled;
- the system can only be paused while running and resumed while paused.

Each violation raises `upgrade_manager.chain.errors.ProgramError`, whose
`code` is an `ErrorCode`. Referring to a proposal that does not exist, or
using the multisig before it is initialized, raises `LookupError`; creating
an account that already exists (a second multisig, a second proposal for the
same buffer, a second migration of the same account) raises `ValueError`.

The individual checks are available on their own in
`upgrade_manager.chain.validation`:

```python
from upgrade_manager.chain.validation import validate_threshold

validate_threshold(3, 3)   # True
validate_threshold(2, 3)   # False
```

`upgrade_manager.chain.state.Pubkey` parses and prints base58 addresses and
derives program addresses with `Pubkey.find_program_address(seeds, program_id)`.

## Running the server

The server reads its settings from the environment. A `.env` file found in
the working directory or one of its parents is loaded first.

| Variable             | Required | Default                 |
|----------------------|----------|-------------------------|
| `DATABASE_URL`       | yes      |                         |
| `PROGRAM_ID`         | yes      |                         |
| `PAYER_KEYPAIR_PATH` | yes      |                         |
| `RPC_URL`            | no       | `http://localhost:8899` |
| `HOST`               | no       | `127.0.0.1`             |
| `PORT`               | no       | `3000`                  |

`DATABASE_URL` is a `sqlite:` URL (for example `sqlite:///upgrades.db`) or a
plain file path; an empty path means an in-memory database. The tables are
created on start-up if they are missing. `PROGRAM_ID` is a base58 address and
`PAYER_KEYPAIR_PATH` names a JSON file holding an array of 64 byte values.

Then start it with:

```
upgrade-manager
```

The same server can be built in code with
`upgrade_manager.backend.app.create_app(services)`, where `services` is an
`upgrade_manager.backend.app.Services`.

## HTTP API

| Method | Path                          | Purpose                                        |
|--------|-------------------------------|------------------------------------------------|
| GET    | `/health`                     | Service name, version and status               |
| GET    | `/proposals`                  | All proposals, newest first                    |
| GET    | `/proposals/{id}`             | One proposal (404 if unknown)                  |
| POST   | `/proposals/propose`          | Create a proposal                              |
| POST   | `/proposals/{id}/approve`     | Record an approval; starts the timelock at 3   |
| POST   | `/proposals/{id}/execute`     | Mark a proposal executed                       |
| POST   | `/proposals/{id}/cancel`      | Mark a proposal cancelled                      |
| POST   | `/migration/start`            | Start migrating a list of accounts             |
| GET    | `/migration/{id}/progress`    | Totals, completed count and percentage         |

Ids in paths are UUIDs; anything else is answered with 400. A body that is
not JSON is answered with 400, one missing a required field with 422. CORS
is open to every origin.

Creating a proposal:

```json
POST /proposals/propose
{"new_program_buffer": "<buffer address>", "description": "Fix fee rounding"}
```

Approving and executing take `{"approver_keypair_path": "..."}` and
`{"executor_keypair_path": "..."}` respectively.

Starting a migration:

```json
POST /migration/start
{"proposal_id": "<proposal uuid>", "account_addresses": ["<address>", "<address>"]}
```

The response carries a `job_id`; poll `/migration/{job_id}/progress` until its
`status` reads `completed`. Accounts are processed one at a time, about ten
per second, and each result is stored in the `account_migrations` table.

## What it does not do

- The HTTP service keeps its records in the database only. It sends no
  transactions to a chain node: `upgrade_manager.backend.clients.AnchorClient`
  and `SquadsClient` return fixed signatures and statuses without contacting
  `RPC_URL`, and the default account migrator only logs.
- Proposals created over HTTP record `system` as proposer and `program_id` as
  program, and every approval is recorded as `approver_pubkey`; the keypair
  paths in approve and execute bodies are required but not read.
- The execute endpoint does not check the timelock; it marks the proposal
  executed.
- The server does not start the timelock monitor
  (`TimelockManager.start_monitoring`); expired timelocks are only logged when
  it or `check_expired_timelocks` is run.
- `RollbackHandler.execute_rollback` records a rollback event but does not
  deploy a previous program version, and nothing in the HTTP API calls it.
- `ProgramBuilder.build_program` runs `anchor build`, which must be installed
  separately; `create_buffer` returns a fresh address without uploading
  anything.
- Only SQLite databases are supported.