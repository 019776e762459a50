"""devstack: idempotent provisioning of a local Jenkins + SonarQube stack.

Brings one Docker network and three named containers (PostgreSQL, Jenkins,
SonarQube) to a running state on a single host:
 - create what is missing, start what is stopped, leave running things alone
 - recreate containers only when RECREATE=1 (named volumes are kept)
 - wait for each service with bounded polling
 - install CLI tools inside Jenkins, then print endpoints and credentials

Every step is safe to re-run after a partial failure.
"""
