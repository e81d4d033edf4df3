#!/usr/bin/env python3
"""
Wix Scraper - Sitemap Driven Content Extraction for Wix Sites

This script takes the base URL of a Wix website, resolves its sitemap,
extracts headings, paragraphs, list items and images from every page,
downloads the images locally and scrapes the blog RSS feed if one exists.

Output layout:
    output/pages/<slug>.json    one structured document per page
    output/images/<name>        downloaded images
    output/blog/<slug>.json     one document per blog post

Usage:
    python wix_scraper.py https://example.com
    python wix_scraper.py https://example.com site-export --limit 10
"""

import sys
import argparse
import gzip
import json
import xml.etree.ElementTree as ET
import time
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional, Set, Tuple, Union
import logging
import posixpath
import re
import os
from urllib.parse import urljoin, urlparse

# Third-party imports (need to be installed)
try:
    import requests
    from bs4 import BeautifulSoup
    import defusedxml.ElementTree as defused_ET
    from tqdm import tqdm
except ImportError as e:
    print(f"Missing required package: {e}")
    print("Install required packages with:")
    print("pip install requests beautifulsoup4 tqdm defusedxml")
    sys.exit(1)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


SITEMAP_PATH = '/sitemap.xml'
BLOG_FEED_PATH = '/blog-feed.xml'
DEFAULT_OUTPUT_DIR = 'output'
DEFAULT_DELAY = 0.25
DEFAULT_TIMEOUT = 10
USER_AGENT = 'Mozilla/5.0 (compatible; WixScraper/1.0)'

# Wix wraps real content in generated UI scaffolding. Anything matching these
# selectors is removed before extraction.
WIX_SCAFFOLD_SELECTORS = (
    "[class*='wixui']",
    "[id*='comp-']",
    'noscript',
    'script',
    'style',
    'svg',
    'iframe',
    '[data-mesh-id]',
    '[data-testid]',
    '[data-hook]',
)

HEADING_TAGS = ('h1', 'h2', 'h3', 'h4')
CONTENT_TAGS = HEADING_TAGS + ('p', 'li', 'img')

GZIP_MAGIC = b'\x1f\x8b'

UNTITLED_PAGE = 'Untitled Page'
HOME_SLUG = 'home'

# Characters and names rejected in portable file names.
ILLEGAL_FILENAME_RE = re.compile(r'[/?<>\\:*|"]')
CONTROL_CHARS_RE = re.compile(r'[\x00-\x1f\x80-\x9f]')
RESERVED_NAME_RE = re.compile(r'^\.+$')
WINDOWS_RESERVED_RE = re.compile(r'^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$', re.IGNORECASE)
WINDOWS_TRAILING_RE = re.compile(r'[. ]+$')
MAX_FILENAME_BYTES = 255
JSON_SUFFIX = '.json'
MAX_SLUG_BYTES = MAX_FILENAME_BYTES - len(JSON_SUFFIX)


# -------------------- Errors --------------------


class ScraperError(Exception):
    """Base class for all scraper errors."""


class FetchError(ScraperError):
    """A single HTTP fetch failed (network error or HTTP status >= 400)."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {reason}")


class SitemapError(ScraperError):
    """The root sitemap could not be loaded. Aborts the run."""


class SitemapFormatError(SitemapError):
    """The root sitemap is neither a <urlset> nor a <sitemapindex>."""


class FeedFormatError(ScraperError):
    """The blog feed body is not an RSS <rss>/<channel> document."""


# -------------------- Naming --------------------


def sanitize_filename(name: str) -> str:
    """Strip characters that are unsafe in file names."""
    name = ILLEGAL_FILENAME_RE.sub('', name)
    name = CONTROL_CHARS_RE.sub('', name)
    if RESERVED_NAME_RE.match(name):
        name = ''
    if WINDOWS_RESERVED_RE.match(name):
        name = ''
    name = WINDOWS_TRAILING_RE.sub('', name)
    return _truncate_bytes(name, MAX_FILENAME_BYTES)


def _truncate_bytes(name: str, limit: int) -> str:
    return name.encode('utf-8')[:limit].decode('utf-8', 'ignore')


def page_slug(url: str) -> str:
    """Derive the output slug of a page from its URL path.

    The site root (empty path) becomes ``home``. The slug is short enough
    that ``<slug>.json`` still fits in one file name.
    """
    path = urlparse(url).path.strip('/')
    return _truncate_bytes(sanitize_filename(path or HOME_SLUG), MAX_SLUG_BYTES) or HOME_SLUG


def blog_slug(title: str) -> str:
    """Lowercase the title and collapse whitespace runs into single hyphens."""
    return _truncate_bytes(sanitize_filename(re.sub(r'\s+', '-', title.lower())), MAX_SLUG_BYTES)


def image_filename(src: str) -> str:
    """Local file name for an image URL: the basename of its path component."""
    return sanitize_filename(posixpath.basename(urlparse(src).path))


def resolve_image_url(src: str, page_url: str) -> str:
    """Make an image ``src`` absolute.

    Protocol-relative references (``//cdn/...``) always get ``https:``.
    """
    if src.startswith('//'):
        return 'https:' + src
    return urljoin(page_url, src)


def _local_tag(tag: str) -> str:
    return tag.split('}')[-1] if '}' in tag else tag


# -------------------- Models --------------------


@dataclass(frozen=True)
class Heading:
    level: int
    text: str

    def __post_init__(self):
        if not 1 <= self.level <= 4:
            raise ValueError(f"Heading level must be between 1 and 4, got {self.level}")

    def to_dict(self) -> Dict[str, object]:
        return {'type': 'heading', 'level': self.level, 'text': self.text}


@dataclass(frozen=True)
class Paragraph:
    text: str

    def to_dict(self) -> Dict[str, object]:
        return {'type': 'paragraph', 'text': self.text}


@dataclass(frozen=True)
class ListItem:
    text: str

    def to_dict(self) -> Dict[str, object]:
        return {'type': 'list-item', 'text': self.text}


@dataclass(frozen=True)
class Image:
    """An image reference. ``src`` is None when the download failed."""

    src: Optional[str]
    alt: str = ''

    def to_dict(self) -> Dict[str, object]:
        return {'type': 'image', 'src': self.src, 'alt': self.alt}


Section = Union[Heading, Paragraph, ListItem, Image]


@dataclass(frozen=True)
class PageDocument:
    url: str
    slug: str
    title: str
    sections: Tuple[Section, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            'url': self.url,
            'slug': self.slug,
            'title': self.title,
            'sections': [section.to_dict() for section in self.sections],
        }


@dataclass(frozen=True)
class BlogPost:
    title: str
    url: str
    description: str = ''
    pub_date: str = ''

    @property
    def slug(self) -> str:
        return blog_slug(self.title)

    def to_dict(self) -> Dict[str, str]:
        return {
            'title': self.title,
            'url': self.url,
            'description': self.description,
            'pubDate': self.pub_date,
        }


class ExtractedContent(NamedTuple):
    """Title and ordered sections pulled out of one page."""

    title: str
    sections: List[Section]


@dataclass
class RunSummary:
    pages_written: int = 0
    pages_failed: int = 0
    images_downloaded: int = 0
    images_failed: int = 0
    blog_posts: int = 0
    failed_urls: List[str] = field(default_factory=list)


# -------------------- Output --------------------


@dataclass(frozen=True)
class OutputDirs:
    """Resolved output directories. Build with :meth:`create`."""

    root: str
    pages: str
    images: str
    blog: str

    @classmethod
    def create(cls, root: str) -> 'OutputDirs':
        """Create the output tree (idempotent) and return its handle."""
        dirs = cls(
            root=root,
            pages=os.path.join(root, 'pages'),
            images=os.path.join(root, 'images'),
            blog=os.path.join(root, 'blog'),
        )
        for path in (dirs.root, dirs.pages, dirs.images, dirs.blog):
            if not os.path.isdir(path):
                os.makedirs(path, exist_ok=True)
                logger.info(f"Created directory: {path}")
        return dirs


def save_json(path: str, data: object):
    """Write ``data`` as indented UTF-8 JSON. Parent directory must exist."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.debug(f"Saved: {path}")


# -------------------- Fetching --------------------


class Fetcher:
    """Thin wrapper around a requests session that raises FetchError."""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, user_agent: str = USER_AGENT):
        """Initialize the fetcher."""
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent
        })

    def fetch(self, url: str) -> bytes:
        """GET ``url`` and return the raw response body."""
        logger.debug(f"Fetching {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(url, str(e)) from e

        if response.status_code >= 400:
            raise FetchError(url, f"HTTP {response.status_code}", status_code=response.status_code)

        return response.content


# -------------------- Sitemap --------------------


class SitemapResolver:
    """Flatten a sitemap (or sitemap index) into a list of page URLs."""

    def __init__(self, fetcher: Fetcher):
        self.fetcher = fetcher

    def resolve(self, sitemap_url: str) -> List[str]:
        """Return every page URL reachable from ``sitemap_url``.

        Duplicates across child sitemaps are preserved. Failures on the root
        sitemap raise SitemapError; failing child sitemaps are skipped.
        """
        logger.info(f"Loading sitemap: {sitemap_url}")
        try:
            data = self.fetcher.fetch(sitemap_url)
        except FetchError as e:
            raise SitemapError(f"Could not load sitemap {sitemap_url}: {e}") from e

        try:
            root = self._parse(data)
        except (ET.ParseError, ValueError, LookupError, OSError, EOFError) as e:
            raise SitemapFormatError(f"Unable to parse sitemap XML at {sitemap_url}: {e}") from e

        kind = _local_tag(root.tag)
        if kind == 'urlset':
            urls = self._page_urls(root)
        elif kind == 'sitemapindex':
            urls = []
            self._resolve_index(root, urls, visited={sitemap_url})
        else:
            raise SitemapFormatError(f"No valid sitemap format detected at {sitemap_url} (root <{kind}>)")

        logger.info(f"Found {len(urls)} URLs")
        return urls

    def _resolve_index(self, index: ET.Element, urls: List[str], visited: Set[str]):
        children = self._locs(index, 'sitemap')
        logger.info(f"Found {len(children)} sitemaps in index")

        for child_url in tqdm(children, desc="Downloading sitemaps"):
            if child_url in visited:
                logger.debug(f"Skipping already visited sitemap: {child_url}")
                continue
            visited.add(child_url)

            logger.info(f"Fetching sub-sitemap: {child_url}")
            try:
                root = self._parse(self.fetcher.fetch(child_url))
            except (FetchError, ET.ParseError, ValueError, LookupError, OSError, EOFError) as e:
                logger.warning(f"Error processing sitemap {child_url}: {e}")
                continue

            kind = _local_tag(root.tag)
            if kind == 'urlset':
                urls.extend(self._page_urls(root))
            elif kind == 'sitemapindex':
                self._resolve_index(root, urls, visited)
            else:
                logger.warning(f"Skipping sitemap {child_url}: unexpected root <{kind}>")

    def _page_urls(self, urlset: ET.Element) -> List[str]:
        return self._locs(urlset, 'url')

    @staticmethod
    def _locs(root: ET.Element, entry_tag: str) -> List[str]:
        """Collect <loc> values of the direct ``entry_tag`` children."""
        locs = []
        for entry in root:
            if _local_tag(entry.tag) != entry_tag:
                continue
            for child in entry:
                if _local_tag(child.tag) == 'loc' and child.text and child.text.strip():
                    locs.append(child.text.strip())
                    break
        return locs

    @staticmethod
    def _parse(data: bytes) -> ET.Element:
        if data[:2] == GZIP_MAGIC:
            data = gzip.decompress(data)
        return defused_ET.fromstring(data)


# -------------------- Images --------------------


class ImageMaterializer:
    """Download images into the output tree and hand back local paths."""

    def __init__(self, fetcher: Fetcher, image_dir: str):
        self.fetcher = fetcher
        self.image_dir = image_dir
        self.downloaded = 0
        self.failed = 0

    def materialize(self, url: str, local_name: str) -> Optional[str]:
        """Fetch ``url`` into ``<image_dir>/<local_name>``.

        Returns ``/images/<local_name>``, or None when the image could not be
        downloaded or written. Failures are never raised.
        """
        if not local_name:
            logger.warning(f"Failed to download image: {url} (no usable file name)")
            self.failed += 1
            return None

        try:
            data = self.fetcher.fetch(url)
            with open(os.path.join(self.image_dir, local_name), 'wb') as f:
                f.write(data)
        except (FetchError, OSError) as e:
            logger.warning(f"Failed to download image: {url} ({e})")
            self.failed += 1
            return None

        self.downloaded += 1
        logger.debug(f"Saved image: {local_name}")
        return f"/images/{local_name}"


# -------------------- Extraction --------------------


class SectionExtractor:
    """Turn rendered Wix markup into a title and an ordered list of sections."""

    def __init__(self, images: ImageMaterializer,
                 removal_selectors: Tuple[str, ...] = WIX_SCAFFOLD_SELECTORS):
        """Initialize the extractor."""
        self.images = images
        self.removal_selectors = removal_selectors

    def extract(self, url: str, markup: Union[str, bytes]) -> ExtractedContent:
        """Extract title and sections from one page's markup."""
        soup = BeautifulSoup(markup, 'html.parser')
        self.clean_html(soup)

        title = self._extract_title(soup)
        root = soup.body or soup

        sections: List[Section] = []
        for el in root.find_all(list(CONTENT_TAGS)):
            section = self._to_section(el, url)
            if section is not None:
                sections.append(section)

        logger.debug(f"Extracted {len(sections)} sections from {url}")
        return ExtractedContent(title=title, sections=sections)

    def clean_html(self, soup: BeautifulSoup):
        """Remove platform scaffolding in place."""
        for selector in self.removal_selectors:
            for el in soup.select(selector):
                # Already gone with a matching ancestor.
                if el.decomposed:
                    continue
                el.decompose()

    def _extract_title(self, soup: BeautifulSoup) -> str:
        h1 = soup.find('h1')
        if h1:
            text = h1.get_text().strip()
            if text:
                return text
        if soup.title:
            text = soup.title.get_text().strip()
            if text:
                return text
        return UNTITLED_PAGE

    def _to_section(self, el, page_url: str) -> Optional[Section]:
        tag = el.name.lower()

        if tag == 'img':
            return self._image_section(el, page_url)

        text = el.get_text().strip()
        if not text:
            return None

        if tag in HEADING_TAGS:
            return Heading(level=int(tag[1]), text=text)
        if tag == 'p':
            return Paragraph(text=text)
        return ListItem(text=text)

    def _image_section(self, el, page_url: str) -> Optional[Image]:
        src = el.get('src')
        if not src:
            return None

        alt = el.get('alt') or ''
        try:
            absolute_url = resolve_image_url(src, page_url)
            local_name = image_filename(absolute_url)
        except ValueError as e:
            logger.warning(f"Failed to download image: {src} ({e})")
            self.images.failed += 1
            return Image(src=None, alt=alt)

        return Image(src=self.images.materialize(absolute_url, local_name), alt=alt)


# -------------------- Blog --------------------


class BlogFeedReader:
    """Read a Wix blog RSS feed. A missing or broken feed yields no posts."""

    def __init__(self, fetcher: Fetcher):
        self.fetcher = fetcher

    def read(self, feed_url: str) -> List[BlogPost]:
        """Fetch and parse the feed; never raises."""
        try:
            data = self.fetcher.fetch(feed_url)
        except FetchError as e:
            logger.info(f"No blog detected ({e}). Skipping blog scraping.")
            return []

        try:
            return self.parse_feed(data)
        except FeedFormatError as e:
            logger.warning(f"Blog feed at {feed_url} is malformed, skipping blog scraping: {e}")
            return []

    @staticmethod
    def parse_feed(xml: Union[str, bytes]) -> List[BlogPost]:
        """Parse an RSS 2.0 document into blog posts.

        Raises FeedFormatError if the body is not ``<rss><channel>...``.
        """
        try:
            root = defused_ET.fromstring(xml)
        except (ET.ParseError, ValueError, LookupError) as e:
            raise FeedFormatError(f"Invalid XML: {e}") from e

        channel = root.find('channel')
        if root.tag != 'rss' or channel is None:
            raise FeedFormatError(f"Invalid RSS format (root <{_local_tag(root.tag)}>)")

        posts = []
        for item in channel.findall('item'):
            title = item.findtext('title')
            link = item.findtext('link')
            if not title or not link:
                logger.warning("Skipping blog item without title or link")
                continue
            posts.append(BlogPost(
                title=title,
                url=link.strip(),
                description=item.findtext('description') or '',
                pub_date=item.findtext('pubDate') or '',
            ))
        return posts


# -------------------- Orchestration --------------------


class WixScraper:
    """Scrape every sitemap page and the blog feed of a Wix site."""

    def __init__(self, base_url: str, output_dir: str = DEFAULT_OUTPUT_DIR,
                 delay: float = DEFAULT_DELAY, timeout: int = DEFAULT_TIMEOUT,
                 limit: Optional[int] = None, skip_blog: bool = False,
                 fetcher: Optional[Fetcher] = None):
        """Initialize the scraper."""
        self.base_url = base_url.rstrip('/')
        self.sitemap_url = self.base_url + SITEMAP_PATH
        self.feed_url = self.base_url + BLOG_FEED_PATH
        self.output_dir = output_dir
        self.delay = delay
        self.limit = limit
        self.skip_blog = skip_blog
        self.fetcher = fetcher or Fetcher(timeout=timeout)

    def run(self) -> RunSummary:
        """Scrape the whole site. Only sitemap failures raise."""
        dirs = OutputDirs.create(self.output_dir)
        images = ImageMaterializer(self.fetcher, dirs.images)
        extractor = SectionExtractor(images)
        summary = RunSummary()

        urls = SitemapResolver(self.fetcher).resolve(self.sitemap_url)
        if self.limit:
            urls = urls[:self.limit]
            logger.info(f"Processing limited to {self.limit} URLs")

        for url in tqdm(urls, desc="Scraping pages"):
            if self.scrape_page(url, extractor, dirs) is not None:
                summary.pages_written += 1
            else:
                summary.pages_failed += 1
                summary.failed_urls.append(url)
            time.sleep(self.delay)

        if self.skip_blog:
            logger.info("Blog scraping disabled.")
        else:
            logger.info("Checking for blog...")
            summary.blog_posts = self.scrape_blog(dirs)

        summary.images_downloaded = images.downloaded
        summary.images_failed = images.failed
        logger.info("Scraping complete. Check the output folder.")
        return summary

    def scrape_page(self, url: str, extractor: SectionExtractor,
                    dirs: OutputDirs) -> Optional[PageDocument]:
        """Fetch, extract and write one page. Returns None on failure."""
        logger.info(f"Scraping: {url}")
        try:
            html = self.fetcher.fetch(url)
            content = extractor.extract(url, html)
            slug = page_slug(url)
            document = PageDocument(
                url=url,
                slug=slug,
                title=content.title,
                sections=tuple(content.sections),
            )
            save_json(os.path.join(dirs.pages, f"{slug}{JSON_SUFFIX}"), document.to_dict())
        except FetchError as e:
            logger.warning(f"Error scraping {url}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Error processing {url}: {e}")
            return None

        return document

    def scrape_blog(self, dirs: OutputDirs) -> int:
        """Write one JSON document per blog post. Returns the number written."""
        posts = BlogFeedReader(self.fetcher).read(self.feed_url)
        written = 0
        for post in posts:
            slug = post.slug
            if not slug:
                logger.warning(f"Skipping blog post with unusable title: {post.title!r}")
                continue
            try:
                save_json(os.path.join(dirs.blog, f"{slug}{JSON_SUFFIX}"), post.to_dict())
            except OSError as e:
                logger.warning(f"Error saving blog post {post.url}: {e}")
                continue
            written += 1

        if posts:
            logger.info(f"Blog scraped successfully ({written} posts).")
        return written


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description='Extract structured page content, images and blog posts from a Wix website'
    )
    parser.add_argument('url', help='Website base URL (e.g., https://example.com)')
    parser.add_argument(
        'output',
        nargs='?',
        default=DEFAULT_OUTPUT_DIR,
        help=f'Output directory path (default: {DEFAULT_OUTPUT_DIR})'
    )
    parser.add_argument(
        '--delay',
        type=float,
        default=DEFAULT_DELAY,
        help=f'Delay between pages in seconds (default: {DEFAULT_DELAY})'
    )
    parser.add_argument(
        '--timeout',
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f'Request timeout in seconds (default: {DEFAULT_TIMEOUT})'
    )
    parser.add_argument(
        '--limit',
        type=int,
        default=None,
        help='Limit number of pages to process'
    )
    parser.add_argument(
        '--skip-blog',
        action='store_true',
        help='Do not scrape the blog RSS feed'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    scraper = WixScraper(
        args.url,
        output_dir=args.output,
        delay=args.delay,
        timeout=args.timeout,
        limit=args.limit,
        skip_blog=args.skip_blog,
    )

    try:
        print(f"\n🔍 Processing website: {args.url}")
        print(f"📁 Output directory: {args.output}")

        summary = scraper.run()

        print(f"\n✅ Processing complete!")
        print(f"📊 Summary:")
        print(f"   - Pages written: {summary.pages_written}")
        print(f"   - Pages failed: {summary.pages_failed}")
        print(f"   - Images downloaded: {summary.images_downloaded}")
        print(f"   - Images failed: {summary.images_failed}")
        print(f"   - Blog posts: {summary.blog_posts}")
        for url in summary.failed_urls:
            print(f"   ⚠️ {url}")
        print(f"📁 Output saved to: {args.output}")

    except KeyboardInterrupt:
        print("\n⚠️ Processing interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        print(f"\n❌ Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
