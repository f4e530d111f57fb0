# Domain model: roles, stages, update records and the state machines built on them
