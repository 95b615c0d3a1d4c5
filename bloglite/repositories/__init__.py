# Repositories package.
#
#   article_repository: aggregate lookup + save_all (the outbox writer)
#   category_repository: category existence / listing
#   version_codec: pooled JSON encoding of VersionHistory
#
# Repositories receive the caller's AsyncSession; only save_all commits,
# because the aggregate row and its outbox rows must land together.
