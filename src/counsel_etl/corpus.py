#!/usr/bin/env python3
"""
Markdown corpus loader.
Scans category/work-item directories and converts each markdown file into a
Document with a title and extracted keywords, ready for indexing.
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from counsel_search.errors import FileReadError
from counsel_search.schema import Category, Document

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset([
    'the', 'and', 'for', 'are', 'but', 'not', 'you', 'all', 'can', 'had',
    'her', 'was', 'one', 'our', 'out', 'day', 'get', 'has', 'him', 'his',
    'how', 'man', 'new', 'now', 'old', 'see', 'two', 'way', 'who', 'this',
    'that', 'with', 'from', 'they', 'have', 'will', 'been', 'were', 'said',
    'each', 'which', 'their', 'time', 'would', 'there', 'could', 'other'
])


class DocumentCorpusLoader:
    """Parses the markdown work-item tree under a corpus root."""

    def __init__(self, root: Union[str, Path], categories: Optional[List[Category]] = None):
        """
        Initialize loader for a corpus root.

        Args:
            root: Directory holding one sub-directory per category
            categories: Categories to scan (defaults to all)
        """
        self.root = Path(root).expanduser()
        self.categories = list(categories) if categories else list(Category)
        self._compile_patterns()

    def _compile_patterns(self):
        """Compile regex patterns for title and keyword extraction."""
        self.heading_pattern = re.compile(r'^#\s+(.+)$', re.MULTILINE)
        self.fenced_code_pattern = re.compile(r'```[\s\S]*?```')
        self.inline_code_pattern = re.compile(r'`[^`]*`')
        # Everything except word characters, whitespace and hyphens
        self.punctuation_pattern = re.compile(r'[^\w\s-]')
        self.numeric_pattern = re.compile(r'^\d+$')

    def corpus_exists(self) -> bool:
        """Check whether the corpus root directory exists."""
        return self.root.is_dir()

    def parse_all(self) -> List[Document]:
        """Scan every category directory and parse all markdown documents."""
        documents = []

        for category in self.categories:
            category_dir = self.root / category.directory_name
            if not category_dir.is_dir():
                logger.debug(f"Category directory not found, skipping: {category_dir}")
                continue
            documents.extend(self._parse_category(category, category_dir))

        logger.info(f"Parsed {len(documents)} documents from {self.root}")
        return documents

    def get_modified_since(self, since: datetime) -> List[Document]:
        """Return documents whose file was modified after the given time."""
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        return [doc for doc in self.parse_all() if doc.last_modified and doc.last_modified > since]

    def _parse_category(self, category: Category, category_dir: Path) -> List[Document]:
        documents = []
        try:
            entries = sorted(category_dir.iterdir())
        except OSError as e:
            logger.warning(f"Cannot list {category_dir}: {e}")
            return documents

        for item_dir in entries:
            if item_dir.is_dir():
                documents.extend(self._parse_work_item(category, item_dir))

        return documents

    def _parse_work_item(self, category: Category, item_dir: Path) -> List[Document]:
        """Parse all markdown files of a single work item."""
        documents = []
        try:
            files = sorted(p for p in item_dir.iterdir() if p.suffix == '.md' and p.is_file())
        except OSError as e:
            logger.warning(f"Cannot list {item_dir}: {e}")
            return documents

        for file_path in files:
            try:
                documents.append(self.parse_document(category, item_dir.name, file_path))
            except FileReadError as e:
                logger.warning(f"Skipping document: {e}")
                continue

        return documents

    def parse_document(self, category: Category, work_item: str, file_path: Path) -> Document:
        """
        Parse a single markdown file.

        Args:
            category: Category of the owning work item
            work_item: Work item directory name
            file_path: Path to the markdown file

        Returns:
            Parsed Document

        Raises:
            FileReadError: File cannot be read or is not valid UTF-8
        """
        try:
            content = file_path.read_text(encoding='utf-8')
            mtime = file_path.stat().st_mtime
        except (OSError, UnicodeDecodeError) as e:
            raise FileReadError(file_path, str(e)) from e

        title = self.extract_title(content, file_path.name)

        return Document(
            title=title,
            content=content,
            category=category,
            work_item=work_item,
            file_name=file_path.name,
            file_path=str(file_path),
            keywords=self.extract_keywords(content, title),
            last_modified=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def extract_title(self, content: str, file_name: str) -> str:
        """Title from the first H1 heading, else from the file name."""
        heading = self.heading_pattern.search(content)
        if heading:
            return heading.group(1).strip()

        stem = file_name[:-3] if file_name.endswith('.md') else file_name
        return re.sub(r'[-_]', ' ', stem)

    def extract_keywords(self, content: str, title: str = '') -> List[str]:
        """Lowercase keyword tokens from title and content, code stripped."""
        text = f"{title} {content}".lower()
        text = self.fenced_code_pattern.sub(' ', text)
        text = self.inline_code_pattern.sub(' ', text)
        text = self.punctuation_pattern.sub(' ', text)

        keywords = {}
        for word in text.split():
            if len(word) <= 2 or word in STOP_WORDS or self.numeric_pattern.match(word):
                continue
            keywords.setdefault(word, None)

        return list(keywords)
