from replication_checker.ui.cli import run

run()
