"""Infrastructure layer module.

Contains configuration, database access, logging setup and HTTP clients
for the remote catalog and the enrichment microservices.
"""
