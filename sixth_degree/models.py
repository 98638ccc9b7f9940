from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Union
from datetime import datetime


class Person(BaseModel):
    """A node in the relationship graph"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=255)
    wikipedia_url: str = Field(..., max_length=500, alias="wikipediaUrl")
    category: Optional[str] = Field(default=None, max_length=100)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class Connection(BaseModel):
    """A directed edge from one person to another"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    from_person_id: int = Field(..., alias="fromPersonId")
    to_person_id: int = Field(..., alias="toPersonId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class SearchRequest(BaseModel):
    """Request model for path finding"""
    start_person: str = Field(..., min_length=1, max_length=255, alias="startPerson")
    end_person: str = Field(..., min_length=1, max_length=255, alias="endPerson")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('start_person', 'end_person')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip whitespace and reject blank names"""
        v = v.strip()
        if not v:
            raise ValueError("Person name cannot be empty")
        return v


class SearchResult(BaseModel):
    """Outcome of a shortest path search"""
    model_config = ConfigDict(populate_by_name=True)

    path: List[Person]
    path_length: int = Field(..., alias="pathLength")
    nodes_explored: int = Field(..., alias="nodesExplored")
    search_time_ms: int = Field(..., alias="searchTimeMs")
    found: bool


class PersonSummary(BaseModel):
    """Person entry in the search picker list"""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    category: Optional[str] = None
    wikipedia_url: str = Field(..., alias="wikipediaUrl")


class PersonListResponse(BaseModel):
    count: int
    persons: List[PersonSummary]


class GraphNode(BaseModel):
    """Graph node for visualization"""
    id: str
    label: str
    category: Optional[str] = None


class GraphEdge(BaseModel):
    """Graph edge for visualization"""
    source: str
    target: str


class GraphData(BaseModel):
    nodes: List[GraphNode]
    edges: List[GraphEdge]


class GraphStats(BaseModel):
    """Aggregate graph statistics"""
    model_config = ConfigDict(populate_by_name=True)

    total_persons: int = Field(..., alias="totalPersons")
    total_connections: int = Field(..., alias="totalConnections")
    # Literal 0 (not 0.0) for an empty graph
    average_connections_per_person: Union[int, float] = Field(..., alias="averageConnectionsPerPerson")
    cache_loaded: bool = Field(..., alias="cacheLoaded")


class PersonCreate(BaseModel):
    """Request model for adding a person"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=255)
    wikipedia_url: str = Field(..., min_length=1, max_length=500, alias="wikipediaUrl")
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Person name cannot be empty")
        return v


class ConnectionCreate(BaseModel):
    """Request model for adding a directed connection"""
    model_config = ConfigDict(populate_by_name=True)

    from_person_id: int = Field(..., gt=0, alias="fromPersonId")
    to_person_id: int = Field(..., gt=0, alias="toPersonId")
