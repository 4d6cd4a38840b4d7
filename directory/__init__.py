"""
Alumni directory service.

The directory is a Flask application that lets alumni sign up with their
name and email address, sign in with an emailed magic link, and maintain a
single directory profile with their education, work experience, and
organizations. Profiles may carry an avatar image and a resume, which are
kept in an S3-compatible object store and referenced by their public URLs.

Authentication
--------------
Magic links are issued and verified by Stytch. Once a link is verified, the
directory opens its own session: an opaque random token, recorded in the
datastore, and handed to the browser in an HTTP-only cookie. Every request
that reads or writes the caller's own profile resolves that token back to a
user before doing anything else.

Directory
---------
The listing of all profiles, and lookup of a single profile by its owner's
user ID, are open to anonymous callers. Access to the directory UI is gated by
the front-end application.
"""
