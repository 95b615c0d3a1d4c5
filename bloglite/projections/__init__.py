# Event handlers invoked by the outbox dispatcher.
#
#   readmodel: ReadModelProjector (articles_rm, article_versions_rm,
#              article_tags_rm)
#   aggregate_delete: AggregateDeletePolicy, removes the write row once
#              ArticleDeleted has been dispatched
#
# Handlers share one signature: (session, event, occurred_at). They never
# commit; the dispatcher owns the transaction.
