"""
Quotes module: group-scoped listing, random pick and submission.
"""
