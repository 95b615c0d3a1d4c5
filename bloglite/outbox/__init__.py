# Transactional outbox.
#
#   store: SQL access to the outbox table (append, claim, mark)
#   registry: topic → event type + handlers, resolved at start-up
#   dispatcher: periodic background task draining the outbox
#
# Writers append rows inside the command transaction (see
# ArticleRepository.save_all); the dispatcher is the only reader.
