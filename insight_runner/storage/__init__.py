"""Run ledger persistence"""
