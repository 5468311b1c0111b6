#!/usr/bin/env python3
"""
Semantic Scholar MCP Server

This MCP server exposes the Semantic Scholar Academic Graph to AI agents:
- Paper search with year, citation, field-of-study, publication-type,
  venue and open-access filters
- Title matching, paper details and batch lookup
- Citation and reference traversal, citation network analysis
- Author search, profiles and publication lists

Resources: paper://{paper_id}, author://{author_id}, field://{field_of_study}
Prompts: literature_review, citation_analysis, research_gap_finder

Configuration comes from the environment (see scholar_config.py); the API key
is optional.
"""

import logging
import sys
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from scholar_client import SemanticScholarClient
from scholar_config import ScholarConfig
from scholar_errors import ConfigurationError, ScholarError
from scholar_filters import SearchFilter
from scholar_models import TOP_ML_VENUES, Author, Paper, resolve_venue
from scholar_rate_limiter import RateLimiter

logger = logging.getLogger("semantic_scholar_server")

# Initialize the MCP server
mcp = FastMCP("semantic-scholar")

CONFIG = ScholarConfig.from_env()

# Shared by every tool call in this process
RATE_LIMITER = RateLimiter()

PAPER_FIELDS = [
    "paperId", "title", "abstract", "year", "venue", "publicationVenue", "externalIds",
    "citationCount", "authors", "url", "isOpenAccess", "openAccessPdf", "fieldsOfStudy",
]
SEARCH_FIELDS = [
    "paperId", "title", "abstract", "authors", "year", "venue", "publicationVenue",
    "externalIds", "citationCount", "url", "isOpenAccess",
]
EDGE_FIELDS = [
    "paperId", "title", "abstract", "year", "venue", "publicationVenue", "citationCount",
    "authors", "url", "isOpenAccess", "contexts", "isInfluential",
]
NETWORK_FIELDS = ["paperId", "title", "year", "authors", "citationCount", "isInfluential"]
AUTHOR_FIELDS = ["authorId", "name", "affiliations", "paperCount", "citationCount", "hIndex", "url"]
AUTHOR_PAPER_FIELDS = [
    "paperId", "title", "abstract", "year", "venue", "publicationVenue", "citationCount",
    "authors", "url", "isOpenAccess",
]


def scholar_client() -> SemanticScholarClient:
    return SemanticScholarClient.from_config(CONFIG, rate_limiter=RATE_LIMITER)


def split_list(value: Optional[str]) -> List[str]:
    """Split a comma or pipe separated argument."""
    if not value:
        return []
    return [item.strip() for item in value.replace("|", ",").split(",") if item.strip()]


# =============================================================================
# FORMATTING
# =============================================================================

def format_error(error: ScholarError) -> str:
    if isinstance(error, ConfigurationError):
        return f"❌ Invalid input: {error}"
    return f"❌ Error: {error}"


def author_names(paper: Paper, limit: Optional[int] = None) -> str:
    authors = paper.get("authors") or []
    names = [a.get("name", "") for a in authors[:limit] if a.get("name")]
    text = ", ".join(names)
    if limit is not None and len(authors) > limit:
        text += f" +{len(authors) - limit} more"
    return text


def format_paper(paper: Paper) -> str:
    """Format a paper record into readable text."""
    output = [f"📄 {paper.get('title') or 'Unknown title'}"]
    names = author_names(paper)
    if names:
        output.append(f"👥 Authors: {names}")
    if paper.get("year"):
        output.append(f"📅 Year: {paper['year']}")
    if paper.get("venue"):
        output.append(f"🏛️ Venue: {paper['venue']}")
    publication_venue = paper.get("publicationVenue") or {}
    if publication_venue.get("name"):
        output.append(f"🏛️ Publisher: {publication_venue['name']}")
    ext_ids = paper.get("externalIds") or {}
    if ext_ids.get("DOI"):
        output.append(f"🔗 DOI: https://doi.org/{ext_ids['DOI']}")
    if ext_ids.get("ArXiv"):
        output.append(f"🔗 arXiv: https://arxiv.org/abs/{ext_ids['ArXiv']}")
    if paper.get("citationCount") is not None:
        output.append(f"📊 Citations: {paper['citationCount']:,}")
    fields = paper.get("fieldsOfStudy") or []
    if fields:
        output.append(f"📚 Fields of Study: {', '.join(fields)}")
    if paper.get("url"):
        output.append(f"🌐 URL: {paper['url']}")
    if paper.get("isOpenAccess"):
        output.append("🔓 Open Access: Yes")
        pdf_info = paper.get("openAccessPdf") or {}
        if pdf_info.get("url"):
            output.append(f"📥 PDF: {pdf_info['url']}")
    if paper.get("paperId"):
        output.append(f"🆔 S2: {paper['paperId']}")
    if paper.get("abstract"):
        output.append(f"\n📋 Abstract:\n{paper['abstract']}")
    return "\n".join(output)


def format_paper_entry(index: int, paper: Paper) -> List[str]:
    """Format one paper as a numbered list entry."""
    output = [f"{index}. 📄 {paper.get('title') or 'Unknown title'} ({paper.get('year') or 'N/A'})"]
    names = author_names(paper, limit=3)
    if names:
        output.append(f"   👥 {names}")
    venue = paper.get("venue") or (paper.get("publicationVenue") or {}).get("name")
    if venue:
        output.append(f"   🏛️ {venue}")
    if paper.get("citationCount") is not None:
        output.append(f"   📊 Citations: {paper['citationCount']:,}")
    if paper.get("isOpenAccess"):
        output.append("   🔓 Open Access")
    if paper.get("url"):
        output.append(f"   🌐 {paper['url']}")
    if paper.get("paperId"):
        output.append(f"   🆔 S2: {paper['paperId']}")
    output.append("")
    return output


def format_author(author: Author) -> str:
    """Format an author record into readable text."""
    output = [f"👤 {author.get('name') or 'Unknown'}"]
    if author.get("authorId"):
        output.append(f"🆔 Semantic Scholar ID: {author['authorId']}")
    affiliations = author.get("affiliations") or []
    if affiliations:
        output.append(f"🏢 Affiliations: {', '.join(affiliations)}")
    if author.get("hIndex") is not None:
        output.append(f"📊 h-index: {author['hIndex']}")
    if author.get("paperCount") is not None:
        output.append(f"📄 Papers: {author['paperCount']:,}")
    if author.get("citationCount") is not None:
        output.append(f"📈 Citations: {author['citationCount']:,}")
    if author.get("url"):
        output.append(f"🌐 URL: {author['url']}")
    return "\n".join(output)


def more_results_note(next_offset: Optional[int]) -> str:
    return f"**More results available. To see the next page, use offset={next_offset}.**"


# =============================================================================
# PAPER SEARCH TOOLS
# =============================================================================

@mcp.tool()
async def search_papers(
    query: str = "",
    year_start: Optional[int] = None,
    year_end: Optional[int] = None,
    min_citations: Optional[int] = None,
    open_access_only: bool = False,
    fields_of_study: Optional[str] = None,
    publication_types: Optional[str] = None,
    venue: Optional[str] = None,
    sort_by: str = "relevance",
    sort_order: str = "desc",
    offset: int = 0,
    limit: int = 10,
) -> str:
    """
    Search for academic papers on Semantic Scholar.

    Args:
        query: Search terms (title and abstract). May be empty when at least one
               filter below is set; the search then matches all papers.
        year_start: Minimum publication year (inclusive)
        year_end: Maximum publication year (inclusive)
        min_citations: Minimum citation count
        open_access_only: Only return papers with free PDFs
        fields_of_study: Comma-separated: Computer Science, Mathematics, Medicine, ...
        publication_types: Comma-separated: JournalArticle, Conference, Review, ...
        venue: Comma-separated venues; shortcuts like 'neurips', 'icml', 'acl' work
        sort_by: 'relevance', 'citationCount' or 'year'
        sort_order: 'asc' or 'desc'
        offset: Pagination offset
        limit: Max results (1-100, default 10)

    Returns:
        List of papers with titles, authors, citations, venues, and links
    """
    search = (
        SearchFilter(query)
        .with_fields(SEARCH_FIELDS)
        .with_pagination(offset, limit)
        .with_year_range(year_start, year_end)
        .with_open_access_only(open_access_only)
        .with_fields_of_study(split_list(fields_of_study))
        .with_publication_types(split_list(publication_types))
        .with_venues([resolve_venue(v) for v in split_list(venue)])
    )
    if min_citations is not None:
        search = search.with_min_citations(min_citations)
    # relevance is the upstream default ordering
    if sort_by != "relevance" or sort_order != "desc":
        search = search.with_sort(sort_by, sort_order)

    try:
        async with scholar_client() as client:
            results = await client.search_papers(search)
    except ScholarError as e:
        return format_error(e)

    if not results.data:
        return f"No papers found for query: '{query or '*'}'"

    output = [f"📚 Found {results.total or len(results.data):,} papers (showing {len(results.data)})"]
    output.append(f"   Query: '{query or '*'}'")
    if venue:
        output.append(f"   Venue: {venue}")
    output.append("")
    for i, paper in enumerate(results.data, offset + 1):
        output.extend(format_paper_entry(i, paper))
    if results.has_more:
        output.append(more_results_note(results.next))
    return "\n".join(output)


@mcp.tool()
async def search_paper_by_title(
    title: str,
    year_start: Optional[int] = None,
    year_end: Optional[int] = None,
    min_citations: Optional[int] = None,
    open_access_only: bool = False,
) -> str:
    """
    Find the paper whose title best matches the given text.

    Args:
        title: Paper title to match
        year_start: Minimum publication year (inclusive)
        year_end: Maximum publication year (inclusive)
        min_citations: Minimum citation count
        open_access_only: Only match papers with free PDFs

    Returns:
        Details of the closest match
    """
    search = (
        SearchFilter(title)
        .with_fields(PAPER_FIELDS)
        .with_year_range(year_start, year_end)
        .with_open_access_only(open_access_only)
    )
    if min_citations is not None:
        search = search.with_min_citations(min_citations)

    try:
        async with scholar_client() as client:
            paper = await client.match_paper(search)
    except ScholarError as e:
        return format_error(e)

    if not paper.get("title"):
        logger.warning("Title match returned incomplete data: %r", paper)
        return "❌ Error: title match returned incomplete data. Try a more specific title."
    return format_paper(paper)


@mcp.tool()
async def get_paper_details(paper_id: str) -> str:
    """
    Get detailed information about a specific paper, including its abstract.

    Args:
        paper_id: Semantic Scholar paper ID, DOI (prefix with 'DOI:'),
                  or arXiv ID (prefix with 'ARXIV:')

    Returns:
        Detailed paper info including abstract, authors, citations
    """
    try:
        async with scholar_client() as client:
            paper = await client.get_paper(paper_id, PAPER_FIELDS)
    except ScholarError as e:
        return format_error(e)
    return format_paper(paper)


async def _paper_edges(paper_id: str, offset: int, limit: int, citations: bool) -> str:
    label = "Citations" if citations else "References"
    key = "citingPaper" if citations else "citedPaper"
    try:
        async with scholar_client() as client:
            if citations:
                page = await client.get_paper_citations(paper_id, EDGE_FIELDS, offset, limit)
            else:
                page = await client.get_paper_references(paper_id, EDGE_FIELDS, offset, limit)
    except ScholarError as e:
        return format_error(e)

    if not page.data:
        return f"No {label.lower()} found for paper {paper_id}."

    output = [f"📊 {label} for paper {paper_id} ({len(page.data)} shown)\n"]
    for i, edge in enumerate(page.data, offset + 1):
        paper = edge.get(key) or {}
        output.append(f"{i}. {paper.get('title') or 'Unknown title'} ({paper.get('year') or 'N/A'})")
        names = author_names(paper, limit=3)
        if names:
            output.append(f"   👥 {names}")
        if paper.get("citationCount") is not None:
            output.append(f"   📊 {paper['citationCount']:,} citations")
        if edge.get("isInfluential"):
            output.append("   ⭐ Influential")
        if paper.get("url"):
            output.append(f"   🌐 {paper['url']}")
        output.append("")
    if page.has_more:
        output.append(more_results_note(page.next))
    return "\n".join(output)


@mcp.tool()
async def get_paper_citations(paper_id: str, offset: int = 0, limit: int = 10) -> str:
    """
    Get papers that cite a specific paper.

    Useful for: Finding follow-up work, tracking research impact.

    Args:
        paper_id: Paper ID (Semantic Scholar ID, arXiv ID, DOI, etc.)
        offset: Pagination offset
        limit: Max citations to return (default 10)
    """
    return await _paper_edges(paper_id, offset, limit, citations=True)


@mcp.tool()
async def get_paper_references(paper_id: str, offset: int = 0, limit: int = 10) -> str:
    """
    Get papers cited by a specific paper.

    Args:
        paper_id: Paper ID (Semantic Scholar ID, arXiv ID, DOI, etc.)
        offset: Pagination offset
        limit: Max references to return (default 10)
    """
    return await _paper_edges(paper_id, offset, limit, citations=False)


@mcp.tool()
async def batch_paper_lookup(paper_ids: str) -> str:
    """
    Look up multiple papers at once (up to 500).

    Args:
        paper_ids: Comma or pipe-separated paper IDs

    Returns:
        Details for all requested papers, in the order given
    """
    ids = split_list(paper_ids)
    try:
        async with scholar_client() as client:
            papers = await client.get_papers_batch(ids, SEARCH_FIELDS)
    except ScholarError as e:
        return format_error(e)

    found = sum(1 for paper in papers if paper is not None)
    output = [f"📚 Batch Paper Lookup ({found} of {len(ids)} found)\n"]
    for i, (paper_id, paper) in enumerate(zip(ids, papers), 1):
        if paper is None:
            output.append(f"{i}. ❓ Not found: {paper_id}")
            output.append("")
            continue
        output.extend(format_paper_entry(i, paper))
    return "\n".join(output)


# =============================================================================
# AUTHOR TOOLS
# =============================================================================

@mcp.tool()
async def search_authors(query: str, offset: int = 0, limit: int = 10) -> str:
    """
    Search for authors by name.

    Args:
        query: Author name to search for
        offset: Pagination offset
        limit: Max results (default 10)

    Returns:
        List of matching authors with their metrics
    """
    try:
        async with scholar_client() as client:
            results = await client.search_authors(query, AUTHOR_FIELDS, offset, limit)
    except ScholarError as e:
        return format_error(e)

    if not results.data:
        return f"No authors found matching: {query}"

    total = results.total if results.total is not None else len(results.data)
    output = [f"👥 Found {total:,} authors matching '{query}' (showing {len(results.data)})\n"]
    for i, author in enumerate(results.data, offset + 1):
        output.append(f"{i}. {format_author(author)}")
        output.append("")
    if results.has_more:
        output.append(more_results_note(results.next))
    return "\n".join(output)


@mcp.tool()
async def get_author_details(author_id: str) -> str:
    """
    Get detailed information about an author.

    Args:
        author_id: Semantic Scholar author ID
    """
    try:
        async with scholar_client() as client:
            author = await client.get_author(author_id, AUTHOR_FIELDS)
    except ScholarError as e:
        return format_error(e)
    return format_author(author)


@mcp.tool()
async def get_author_papers(author_id: str, offset: int = 0, limit: int = 10) -> str:
    """
    Get papers written by a specific author.

    Args:
        author_id: Semantic Scholar author ID
        offset: Pagination offset
        limit: Max papers to return (default 10)
    """
    try:
        async with scholar_client() as client:
            page = await client.get_author_papers(author_id, AUTHOR_PAPER_FIELDS, offset, limit)
    except ScholarError as e:
        return format_error(e)

    if not page.data:
        return f"No papers found for author {author_id}."

    output = [f"📚 Papers by author {author_id} ({len(page.data)} shown)\n"]
    for i, paper in enumerate(page.data, offset + 1):
        output.extend(format_paper_entry(i, paper))
    if page.has_more:
        output.append(more_results_note(page.next))
    return "\n".join(output)


# =============================================================================
# ANALYSIS TOOLS
# =============================================================================

def _summarize_edges(label: str, edges: list, key: str) -> List[str]:
    output = [f"\n{label} ({len(edges)} analyzed)"]
    if not edges:
        output.append("   None found.")
        return output
    influential = sum(1 for edge in edges if edge.get("isInfluential"))
    output.append(f"   Influential: {influential} of {len(edges)} ({round(influential / len(edges) * 100)}%)")
    ranked = sorted(edges, key=lambda edge: (edge.get(key) or {}).get("citationCount") or 0, reverse=True)
    for i, edge in enumerate(ranked[:5], 1):
        paper = edge.get(key) or {}
        line = f"   {i}. {paper.get('title') or 'Unknown title'} ({paper.get('year') or 'N/A'})"
        if paper.get("citationCount") is not None:
            line += f" | {paper['citationCount']:,} citations"
        if edge.get("isInfluential"):
            line += " | ⭐ influential"
        output.append(line)
    return output


@mcp.tool()
async def analyze_citation_network(
    paper_id: str,
    depth: int = 1,
    citations_limit: int = 10,
    references_limit: int = 10,
) -> str:
    """
    Analyze the citation network around a paper.

    Args:
        paper_id: Paper ID (Semantic Scholar ID, arXiv ID, DOI, etc.)
        depth: 1 for direct citations/references, 2 to also expand the most
               cited influential citing paper
        citations_limit: Max citations to analyze
        references_limit: Max references to analyze
    """
    try:
        async with scholar_client() as client:
            paper = await client.get_paper(paper_id, ["paperId", "title", "year", "authors", "citationCount", "venue"])
            citations = await client.get_paper_citations(paper_id, NETWORK_FIELDS, limit=citations_limit)
            references = await client.get_paper_references(paper_id, NETWORK_FIELDS, limit=references_limit)

            output = [f"🕸️ Citation Network for \"{paper.get('title') or paper_id}\" ({paper.get('year') or 'N/A'})"]
            names = author_names(paper)
            if names:
                output.append(f"👥 {names}")
            if paper.get("venue"):
                output.append(f"🏛️ {paper['venue']}")
            if paper.get("citationCount") is not None:
                output.append(f"📊 Total citations: {paper['citationCount']:,}")

            output.extend(_summarize_edges("📥 Citing papers", citations.data, "citingPaper"))
            output.extend(_summarize_edges("📤 Referenced papers", references.data, "citedPaper"))

            if depth >= 2:
                influential = [c for c in citations.data if c.get("isInfluential")]
                influential.sort(key=lambda c: (c.get("citingPaper") or {}).get("citationCount") or 0, reverse=True)
                top = (influential[0].get("citingPaper") or {}) if influential else {}
                if top.get("paperId"):
                    output.append(f"\n🔁 Second level: papers citing \"{top.get('title') or top['paperId']}\"")
                    try:
                        second = await client.get_paper_citations(top["paperId"], NETWORK_FIELDS, limit=5)
                        output.extend(_summarize_edges("   Citing papers", second.data, "citingPaper"))
                    except ScholarError as e:
                        output.append(f"   {format_error(e)}")
                else:
                    output.append("\n🔁 Second level: no influential citing paper to expand.")
    except ScholarError as e:
        return format_error(e)

    return "\n".join(output)


# =============================================================================
# UTILITY TOOLS
# =============================================================================

@mcp.tool()
async def list_venues() -> str:
    """
    List supported venue shortcuts for the venue filter.

    Returns:
        List of venue shortcuts and their full names
    """
    output = ["🏛️ Supported Venue Shortcuts\n"]
    output.append("Use these shortcuts in venue filters:\n")

    categories = {
        "General ML": ["neurips", "icml", "iclr", "aaai", "ijcai", "jmlr"],
        "Computer Vision": ["cvpr", "iccv", "eccv"],
        "NLP": ["acl", "emnlp", "naacl"],
        "Applied ML": ["kdd"],
        "Robotics": ["icra", "corl"],
        "High Impact Journals": ["nature", "science", "tpami"]
    }

    for category, venues in categories.items():
        output.append(f"\n{category}:")
        for v in venues:
            names = TOP_ML_VENUES.get(v, [v])
            output.append(f"   '{v}' → {names[0]}")

    return "\n".join(output)


# =============================================================================
# RESOURCES
# =============================================================================

@mcp.resource("paper://{paper_id}")
async def paper_resource(paper_id: str) -> str:
    """Detailed information about a paper by ID."""
    return await get_paper_details(paper_id)


@mcp.resource("author://{author_id}")
async def author_resource(author_id: str) -> str:
    """Detailed information about an author by ID."""
    return await get_author_details(author_id)


@mcp.resource("field://{field_of_study}")
async def field_resource(field_of_study: str) -> str:
    """Top cited papers in a field of study."""
    search = (
        SearchFilter("")
        .with_fields_of_study([field_of_study])
        .with_fields(["paperId", "title", "authors", "year", "venue", "citationCount"])
        .with_sort("citationCount", "desc")
        .with_pagination(0, 10)
    )
    try:
        async with scholar_client() as client:
            results = await client.search_papers(search)
    except ScholarError as e:
        return format_error(e)

    output = [f"Top papers in {field_of_study}:\n"]
    for i, paper in enumerate(results.data, 1):
        output.extend(format_paper_entry(i, paper))
    return "\n".join(output)


# =============================================================================
# PROMPTS
# =============================================================================

def _period(year_start: Optional[str], year_end: Optional[str]) -> str:
    if not (year_start or year_end):
        return ""
    return f"Focus on literature from {year_start or 'the beginning'} to {year_end or 'present'}.\n\n"


@mcp.prompt()
def literature_review(
    topic: str,
    year_start: Optional[str] = None,
    year_end: Optional[str] = None,
    fields_of_study: Optional[str] = None,
) -> str:
    """Conduct a literature review on a research topic."""
    text = f'Please conduct a literature review on the topic: "{topic}"\n\n'
    text += _period(year_start, year_end)
    if fields_of_study:
        text += f"Consider research in the following fields: {fields_of_study}.\n\n"
    text += (
        "For this literature review, please:\n"
        "1. Identify key papers and their contributions\n"
        "2. Summarize major findings and methodologies\n"
        "3. Identify trends, patterns, and gaps in the research\n"
        "4. Suggest potential directions for future research\n\n"
        "Use the Semantic Scholar tools to search for relevant papers and analyze citation networks."
    )
    return text


@mcp.prompt()
def citation_analysis(paper_id: str, depth: Optional[str] = None) -> str:
    """Analyze the citation network for a specific paper."""
    text = f"Please analyze the citation network for the paper with ID: {paper_id}\n\n"
    if depth == "2":
        text += "Include a second-level analysis of citations.\n\n"
    text += (
        "For this citation analysis, please:\n"
        "1. Identify the most influential papers that cite this work\n"
        "2. Analyze how this paper has influenced different research areas\n"
        "3. Identify potential research collaborations based on citation patterns\n"
        "4. Summarize the overall impact of this paper on the field\n\n"
        "Use the Semantic Scholar tools to retrieve paper details and analyze the citation network."
    )
    return text


@mcp.prompt()
def research_gap_finder(
    topic: str,
    year_start: Optional[str] = None,
    year_end: Optional[str] = None,
) -> str:
    """Identify research gaps in a specific topic."""
    text = f'Please identify research gaps in the topic: "{topic}"\n\n'
    text += _period(year_start, year_end)
    text += (
        "For this analysis, please:\n"
        "1. Identify the main research questions being addressed in this field\n"
        "2. Determine which questions have been thoroughly explored\n"
        "3. Identify questions that have received limited attention\n"
        "4. Suggest specific research gaps that could be addressed in future work\n"
        "5. Recommend methodologies or approaches for addressing these gaps\n\n"
        "Use the Semantic Scholar tools to search for relevant papers and analyze the current state of research."
    )
    return text


def main() -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if CONFIG.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(
        "Starting Semantic Scholar MCP server (rate tier: %s, API key %s)",
        CONFIG.rate_tier,
        "configured" if CONFIG.api_key else "not configured",
    )
    mcp.run()


if __name__ == "__main__":
    main()
