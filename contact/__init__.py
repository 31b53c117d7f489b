"""contact/ -- Contact-form submissions: the plain CRUD resource the landing page posts to.

Layer rule: contact/ imports from core/ only.
"""
