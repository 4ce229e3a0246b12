import logging
import os
import xml.etree.ElementTree as ET
from typing import Dict, Iterable, List, Optional, Sequence

from .config import UserType

logger = logging.getLogger(__name__)


def resolve_jmx_path(jmx_path: Optional[str], search_roots: Iterable[str]) -> Optional[str]:
    """First existing location of ``jmx_path``; relative paths are tried against each root."""
    if not jmx_path:
        return None
    if os.path.isabs(jmx_path):
        return jmx_path if os.path.isfile(jmx_path) else None
    for root in search_roots:
        candidate = os.path.join(root, jmx_path)
        if os.path.isfile(candidate):
            return candidate
    return None


def thread_group_names(jmx_path: str) -> List[str]:
    """``testname`` of every ThreadGroup element in a JMeter test plan."""
    tree = ET.parse(jmx_path)
    names = []
    for element in tree.iter("ThreadGroup"):
        name = element.get("testname")
        if name:
            names.append(name)
    return names


def parse_jmx_thread_groups(jmx_path: Optional[str],
                            user_types: Sequence[UserType]) -> Optional[Dict[str, List[str]]]:
    """
    Map user-type keys to the thread groups declared in the JMX plan.

    A thread group belongs to a user type when one of the user type's
    ``jmx_thread_group_names`` is a substring of the group name. Returns None
    when the plan is missing or unreadable so callers fall back to
    thread-name patterns.
    """
    if not jmx_path or not os.path.isfile(jmx_path):
        if jmx_path:
            logger.warning("JMX file not found: %s; using thread name patterns", jmx_path)
        return None

    try:
        names = thread_group_names(jmx_path)
    except (ET.ParseError, OSError) as e:
        logger.warning("Error parsing JMX file %s: %s", jmx_path, e)
        return None

    mapping: Dict[str, List[str]] = {u.key: [] for u in user_types}
    for name in names:
        for user_type in user_types:
            if any(pattern in name for pattern in user_type.jmx_thread_group_names):
                mapping[user_type.key].append(name)

    logger.info("Found %d thread groups in %s", len(names), os.path.basename(jmx_path))
    return mapping
