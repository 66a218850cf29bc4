"""In-memory contact network analysis.

The graph is rebuilt from the contact book on demand: nodes are contacts and
edges come from LinkedIn connection names that resolve to other contacts.
"""
