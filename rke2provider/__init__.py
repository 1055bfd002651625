"""RKE2 cluster provider: renders boot configuration for nodes joining an RKE2 cluster."""

__version__ = "0.1.0"
