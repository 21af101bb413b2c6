"""Business logic for jobs, payments, the earnings ledger and payouts"""
