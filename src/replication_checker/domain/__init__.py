"""Replication checker domain: matching, reconciliation and ban bookkeeping."""
