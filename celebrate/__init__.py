"""
Backend package for the celebration site.

Visitors browse events by year, view media galleries and post moderated
wishes; administrators manage years, events, media, admins and social posts.
Everything is persisted in a single JSON document and uploads go to local
disk, S3 or Cloudinary.
"""
