"""relsync: promote a published release into an Umbrel app-store fork.

Resolves the release version, builds or locates the image digest, syncs the
``umbrel-apps`` fork with upstream, patches the app descriptors and opens
(or reuses) exactly one pull request per version.
"""

__version__ = "0.3.0"
