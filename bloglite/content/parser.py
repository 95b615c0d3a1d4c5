import yaml

from bloglite.domain.errors import ContentParseError

DELIMITER = "---"


class FrontMatterParser:
    """
    Split a markdown document into its YAML front matter and body.

    The document must open with ``---`` and a second ``---`` must close
    the front matter. Every front-matter value has to be a string;
    ``tags`` is a comma-separated list (``tags: python, web``).
    """

    def parse(self, raw: str) -> tuple[dict[str, str], str]:
        text = raw.strip()
        if not text.startswith(DELIMITER):
            raise ContentParseError("Document has no front matter")

        rest = text[len(DELIMITER):]
        end = rest.find(DELIMITER)
        if end < 0:
            raise ContentParseError("Front matter is not closed with '---'")

        front_matter = rest[:end].strip()
        body = rest[end + len(DELIMITER):].strip()
        return _to_string_map(front_matter), body


def _to_string_map(front_matter: str) -> dict[str, str]:
    try:
        parsed = yaml.safe_load(front_matter)
    except yaml.YAMLError as exc:
        raise ContentParseError(f"Front matter is not valid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ContentParseError("Front matter must be a mapping")

    metadata: dict[str, str] = {}
    for key, value in parsed.items():
        if not isinstance(key, str):
            raise ContentParseError("Front matter keys must be strings")
        if not isinstance(value, str):
            raise ContentParseError(f"Front matter value for {key!r} must be a string")
        metadata[key] = value
    return metadata
