"""Save a copy of the downloaded feed that holds only the items shown this run."""

import re
import xml.etree.ElementTree as ET
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Set, Tuple

from ..hooks.interfaces import FeedContext, HookResult
from ..hooks.plugin import Plugin
from ..ingestion.urls import normalize_url

_GENERATED_PREFIX = re.compile(r"ns\d+$")


class PruneOriginalRSSPlugin(Plugin):
    """Feed options: ``prune_to`` (path) and ``prune_only`` (bool).

    The raw document is written to ``prune_to`` minus every item whose
    link is not among the feed's surviving items. Handles RSS 0.9x/2.0,
    RSS 1.0 (RDF) and Atom. Nothing is written when no item is left.
    With ``prune_only`` the feed is skipped once the copy is written.
    """

    name = "prune_original_rss"
    priority = 950  # Sees the item list after other PRE_FEED_OUTPUT hooks

    def pre_feed_download(self, ctx: FeedContext):
        if ctx.source.option("prune_only") and not ctx.source.option("prune_to"):
            raise ValueError("prune_only may only be set together with prune_to")
        return HookResult.CONTINUE

    def pre_feed_output(self, ctx: FeedContext):
        target = ctx.source.option("prune_to")
        if not target or ctx.raw is None:
            return HookResult.CONTINUE

        keep = {normalize_url(item.url) for item in ctx.items if item.url}
        document, left = prune_document(ctx.raw, keep)
        ctx.log.debug("original_feed_pruned", items_left=left)

        if left:
            path = Path(target)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(document)
            ctx.log.info("pruned_feed_saved", path=str(path), items=left)

        if ctx.source.option("prune_only"):
            return HookResult.SKIP_FEED
        return HookResult.CONTINUE


def prune_document(raw: bytes, keep_links: Set[str]) -> Tuple[bytes, int]:
    """Drop items whose links are not in keep_links (canonical URLs).

    Items without any link are kept. Returns the re-serialized document
    and the number of linked items left in it.
    """
    default_ns = _register_namespaces(raw)
    root = ET.fromstring(raw)
    kind = _local_name(root.tag)

    if kind == "rss":
        containers = [c for c in root if _local_name(c.tag) == "channel"]
        item_name = "item"
    elif kind == "rdf":
        containers = [root]
        item_name = "item"
    elif kind == "feed":
        containers = [root]
        item_name = "entry"
    else:
        raise ValueError(f"unsupported feed document root <{root.tag}>")

    left = 0
    for container in containers:
        for element in [c for c in container if _local_name(c.tag) == item_name]:
            links = _item_links(element, atom=(kind == "feed"))
            if not links:
                continue
            if any(normalize_url(link) in keep_links for link in links):
                left += 1
            else:
                container.remove(element)

    if default_ns and not all(_qualified(el) for el in root.iter()):
        # ElementTree can only write a default namespace when every name is qualified
        default_ns = None
    document = ET.tostring(root, encoding="utf-8", xml_declaration=True, default_namespace=default_ns)
    return document, left


def _register_namespaces(raw: bytes) -> Optional[str]:
    """Keep the document's own prefixes on output. Returns its default namespace, if any."""
    default_ns = None
    for _, (prefix, uri) in ET.iterparse(BytesIO(raw), events=("start-ns",)):
        if not prefix:
            default_ns = default_ns or uri
        elif not _GENERATED_PREFIX.match(prefix):
            ET.register_namespace(prefix, uri)
    return default_ns


def _item_links(element: ET.Element, atom: bool) -> List[str]:
    links = []
    for child in element:
        if _local_name(child.tag) != "link":
            continue
        if atom:
            if child.get("rel", "alternate") == "alternate" and child.get("href"):
                links.append(child.get("href").strip())
        elif child.text and child.text.strip():
            links.append(child.text.strip())
    return links


def _qualified(element: ET.Element) -> bool:
    return element.tag.startswith("{") and all(key.startswith("{") for key in element.attrib)


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()
