"""
PR Reviewer Assignment Service

Tracks teams, users and pull requests, and assigns reviewers automatically:
on PR creation, on single-reviewer replacement, and when a batch of team
members is deactivated at once.
"""

__version__ = "1.0.0"
__author__ = "PR Reviewer Team"
