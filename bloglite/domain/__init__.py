# Domain package.
#
# Pure, I/O-free model of the write side:
#
#   version: content-addressed, append-only version history
#   content: front-matter rules and the Content factory
#   article: the Article aggregate, its state machine and builder
#   events: immutable domain events stored in the outbox
#   errors: domain error classes (see bloglite.exceptions for families)
#
# Nothing here imports SQLAlchemy; persistence lives in bloglite.repositories.
