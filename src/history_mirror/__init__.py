"""
History Mirror - replay a pull request's configuration history as exported snapshots.

Walks every first-parent commit of a pull request range, runs an external
transformer over each checked-out source tree and records the transformer's
output as one commit per source commit in a freshly initialized mirror
repository.
"""

__version__ = "0.4.2"
