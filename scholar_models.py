"""
Typed records and vocabularies for the Semantic Scholar Academic Graph API.

Records are partial: the API omits every field that was not requested, so
each record is a ``TypedDict`` with ``total=False``. A missing key means
"not requested / not returned"; it is never filled in with a default.
Read optional attributes with ``record.get(...)``.
"""

from typing import Dict, List, Optional, TypedDict


# =============================================================================
# RECORDS
# =============================================================================

class ExternalIds(TypedDict, total=False):
    DOI: str
    ArXiv: str
    MAG: str
    ACL: str
    PubMed: str
    PubMedCentral: str
    DBLP: str
    CorpusId: int


class OpenAccessPdf(TypedDict, total=False):
    url: str
    status: str


class PublicationVenue(TypedDict, total=False):
    id: str
    name: str
    type: str
    url: str


class Tldr(TypedDict, total=False):
    model: str
    text: str


class AuthorRef(TypedDict, total=False):
    authorId: Optional[str]
    name: str


class Paper(TypedDict, total=False):
    paperId: str
    corpusId: int
    title: str
    abstract: Optional[str]
    year: Optional[int]
    venue: Optional[str]
    publicationVenue: Optional[PublicationVenue]
    publicationDate: Optional[str]
    publicationTypes: Optional[List[str]]
    externalIds: Optional[ExternalIds]
    url: str
    citationCount: int
    influentialCitationCount: int
    referenceCount: int
    isOpenAccess: bool
    openAccessPdf: Optional[OpenAccessPdf]
    fieldsOfStudy: Optional[List[str]]
    authors: List[AuthorRef]
    tldr: Optional[Tldr]
    matchScore: float


class Author(TypedDict, total=False):
    authorId: str
    externalIds: Dict[str, object]
    name: str
    aliases: Optional[List[str]]
    affiliations: List[str]
    homepage: Optional[str]
    url: str
    paperCount: int
    citationCount: int
    hIndex: int
    papers: List[Paper]


class Citation(TypedDict, total=False):
    """An edge to a paper that cites the queried paper."""

    citingPaper: Paper
    contexts: List[str]
    intents: List[str]
    isInfluential: bool


class Reference(TypedDict, total=False):
    """An edge to a paper cited by the queried paper."""

    citedPaper: Paper
    contexts: List[str]
    intents: List[str]
    isInfluential: bool


# =============================================================================
# VOCABULARIES
# =============================================================================

FIELDS_OF_STUDY = frozenset({
    "Computer Science",
    "Medicine",
    "Chemistry",
    "Biology",
    "Materials Science",
    "Physics",
    "Geology",
    "Psychology",
    "Art",
    "History",
    "Geography",
    "Sociology",
    "Business",
    "Political Science",
    "Economics",
    "Philosophy",
    "Mathematics",
    "Engineering",
    "Environmental Science",
    "Agricultural and Food Sciences",
    "Education",
    "Law",
    "Linguistics",
})

PUBLICATION_TYPES = frozenset({
    "Review",
    "JournalArticle",
    "CaseReport",
    "ClinicalTrial",
    "Conference",
    "Dataset",
    "Editorial",
    "LettersAndComments",
    "MetaAnalysis",
    "News",
    "Study",
    "Book",
    "BookSection",
})

SORT_KEYS = ("relevance", "citationCount", "year")
SORT_ORDERS = ("asc", "desc")

# Top ML Conference/Venue mappings; the first name is the canonical one
TOP_ML_VENUES = {
    "neurips": ["NeurIPS", "Neural Information Processing Systems", "NIPS"],
    "icml": ["ICML", "International Conference on Machine Learning"],
    "iclr": ["ICLR", "International Conference on Learning Representations"],
    "cvpr": ["CVPR", "Computer Vision and Pattern Recognition"],
    "iccv": ["ICCV", "International Conference on Computer Vision"],
    "eccv": ["ECCV", "European Conference on Computer Vision"],
    "acl": ["ACL", "Association for Computational Linguistics"],
    "emnlp": ["EMNLP", "Empirical Methods in Natural Language Processing"],
    "naacl": ["NAACL", "North American Chapter of the Association for Computational Linguistics"],
    "aaai": ["AAAI", "Association for the Advancement of Artificial Intelligence"],
    "ijcai": ["IJCAI", "International Joint Conference on Artificial Intelligence"],
    "kdd": ["KDD", "SIGKDD", "Knowledge Discovery and Data Mining"],
    "icra": ["ICRA", "International Conference on Robotics and Automation"],
    "corl": ["CoRL", "Conference on Robot Learning"],
    "jmlr": ["JMLR", "Journal of Machine Learning Research"],
    "tpami": ["TPAMI", "IEEE Transactions on Pattern Analysis and Machine Intelligence"],
    "nature": ["Nature", "Nature Machine Intelligence"],
    "science": ["Science"],
}


def resolve_venue(name: str) -> str:
    """Map a venue shortcut like 'neurips' to its canonical name.

    Unknown names are returned unchanged (stripped).
    """
    names = TOP_ML_VENUES.get(name.strip().lower())
    return names[0] if names else name.strip()
