"""HTTP service that records upgrade proposals, approvals, timelocks and migrations in SQLite."""