from __future__ import annotations


class DevstackError(Exception):
    pass


class RuntimeCallError(DevstackError):
    """A Docker call failed in a way that must abort the run."""


class ResourceGone(DevstackError):
    """The named object does not exist (any more).

    Callers that treat absence as an expected state catch this explicitly;
    every other Docker failure surfaces as RuntimeCallError.
    """


class ProvisionError(DevstackError):
    """A post-provision step (tool installation) failed inside a container."""


class ConfigError(DevstackError):
    """Settings produced a container spec the models reject (e.g. JENKINS_MEMORY=6gb)."""
