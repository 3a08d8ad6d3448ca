"""Embassy appointment watcher: polls the booking page and reports earlier slots."""
