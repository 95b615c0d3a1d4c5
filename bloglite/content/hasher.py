import hashlib

from bloglite.domain.content import FrontMatter

HASH_LENGTH = 6


class Sha256ContentHasher:
    """Short SHA-256 digest over body, title, summary and (sorted) tags."""

    def hash(self, front_matter: FrontMatter, body: str) -> str:
        digest = hashlib.sha256()
        digest.update(body.encode("utf-8"))
        digest.update(front_matter.title.encode("utf-8"))
        digest.update(front_matter.summary.encode("utf-8"))
        for tag in sorted(front_matter.tags):
            digest.update(tag.encode("utf-8"))
        return digest.hexdigest()[:HASH_LENGTH]
