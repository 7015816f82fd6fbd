from typing import Dict, List, Optional
from pydantic import BaseModel


class ClientTag(BaseModel):
    """A selection-time tag; ids come from the catalogue below."""
    id: str
    label: str


TRAVEL_CATEGORIES: Dict[str, List[ClientTag]] = {
    "seasons": [
        ClientTag(id="1", label="#estate"),
        ClientTag(id="2", label="#inverno"),
        ClientTag(id="3", label="#primavera"),
        ClientTag(id="4", label="#autunno"),
    ],
    "destinations": [
        ClientTag(id="5", label="#mare"),
        ClientTag(id="6", label="#montagna"),
        ClientTag(id="7", label="#citta"),
        ClientTag(id="8", label="#natura"),
    ],
    "experiences": [
        ClientTag(id="9", label="#viaggio"),
        ClientTag(id="10", label="#vacanza"),
        ClientTag(id="11", label="#avventura"),
        ClientTag(id="12", label="#relax"),
        ClientTag(id="13", label="#cultura"),
    ],
    "people": [
        ClientTag(id="14", label="#famiglia"),
        ClientTag(id="15", label="#amici"),
        ClientTag(id="16", label="#coppia"),
    ],
    "moments": [
        ClientTag(id="17", label="#tramonto"),
        ClientTag(id="18", label="#alba"),
        ClientTag(id="19", label="#panorama"),
        ClientTag(id="20", label="#food"),
    ],
}

PREDEFINED_TAGS: List[ClientTag] = [tag for tags in TRAVEL_CATEGORIES.values() for tag in tags]

_BY_LABEL = {tag.label: tag for tag in PREDEFINED_TAGS}


def find_tag(label: str) -> Optional[ClientTag]:
    """Looks a label up in the catalogue; a missing leading # is added."""
    if not label.startswith("#"):
        label = f"#{label}"
    return _BY_LABEL.get(label)


def tags_from_labels(labels: List[str]) -> List[ClientTag]:
    """Catalogue tags for known labels; unknown labels get ad-hoc ids."""
    tags = []
    for index, label in enumerate(labels):
        tag = find_tag(label)
        if tag is None:
            tag = ClientTag(id=f"custom-{index}", label=label if label.startswith("#") else f"#{label}")
        tags.append(tag)
    return tags
