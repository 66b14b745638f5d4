"""
StudyFeed: turns ICS calendar feeds into class sessions and assignments,
and reconciles assignment course codes against a course catalog.
"""
