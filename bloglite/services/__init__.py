# Service layer: command handlers (write side) and query handlers (read side).
#
# Command handlers commit through ArticleRepository.save_all; query handlers
# only read the projected read model.
