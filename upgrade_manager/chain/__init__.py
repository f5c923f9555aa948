"""In-memory model of the upgrade program: state, instructions, events and errors."""