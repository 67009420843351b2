"""
Sync subsystem.

Components:
- external.py: fetch categories, raw records, normalized ExternalItem
- normalizer.py: raw records -> ExternalItem
- github_client.py / toggl_client.py: async HTTP fetchers
- reconciler.py: fetch phase + apply phase into the task store
"""
