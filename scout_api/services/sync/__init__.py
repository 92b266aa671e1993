"""
Data synchronization layer.

Provider adapters fetch raw data, payload types map it, the identity resolver
matches it against stored rows and the upsert engine writes it. Orchestrators
tie those together per provider; jobs wrap orchestrators with the
single-flight lock, retries and alerting.
"""
