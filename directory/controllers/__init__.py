"""
Request controllers for the directory API.

Controllers take request data that the routes have already decoded, and
return a ``(data, status_code, headers)`` tuple. They do not raise for
anything a client might reasonably do wrong.
"""
