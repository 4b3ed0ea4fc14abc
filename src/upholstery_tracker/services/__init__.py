"""
Service layer for the Upholstery Tracker.

Services own all business rules: ledger mutations over the ORM records and
the pure summary and alert engines that fold a ``LedgerSnapshot``.
"""
