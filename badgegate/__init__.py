"""Badge-gated authorization engine.

Decides whether an identity may create or join a community by checking
its verified attestations (age, nationality, company email domain)
against the community's badge policy.
"""

__version__ = "0.1.0"
