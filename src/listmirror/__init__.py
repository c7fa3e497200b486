"""Mirror labeler firehose labels into Bluesky list memberships."""

__version__ = "0.1.0"
