"""Downstream repository handling: fork sync, pull requests, GitHub API.

This package provides the primitives for:
- Sync: bring the local ``umbrel-apps`` copy to the upstream tip
- Proposal: commit, push and open exactly one pull request per version
- GitHub: the narrow slice of the REST API those two need
"""
