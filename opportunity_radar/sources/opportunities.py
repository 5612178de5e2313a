from __future__ import annotations

import re
from typing import Any
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from opportunity_radar.core.urls import normalize_url, url_identity
from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.sources.base import (
    FetchHints,
    SourceAdapter,
    as_float,
    as_text,
    as_text_list,
    clean_description,
    days_from_now,
    parse_timestamp,
)
from opportunity_radar.sources.errors import ProviderParseError, ProviderUnavailableError


MAX_RECORDS_PER_SOURCE = 10
_INSTITUTION_RE = re.compile(r"University|College|Institute")
_SLUG_RE = re.compile(r"\s+")


def _slug(text: str) -> str:
    return _SLUG_RE.sub("-", text.strip()).lower()


class NsfReuAdapter(SourceAdapter):
    """NSF Research Experiences for Undergraduates site list (HTML table)."""

    source = "nsf-reu"
    name = "Research Opportunities"
    categories = frozenset({"research"})
    uses_static_fallback = True
    default_url = "https://www.nsf.gov/crssprgm/reu/list_result.jsp?unitid=5049"

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        response = await self._request(client, "GET", self.url, headers={"Accept": "text/html,application/json"})
        return self.parse(response.text)

    def parse(self, html: str) -> list[CanonicalOpportunity]:
        soup = BeautifulSoup(html, "html.parser")
        records: list[CanonicalOpportunity] = []
        for row in soup.find_all("tr"):
            link = row.find("a", href=True)
            institution_cell = next(
                (cell for cell in row.find_all("td") if _INSTITUTION_RE.search(cell.get_text())),
                None,
            )
            if link is None or institution_cell is None:
                continue
            site_title = link.get_text(strip=True)
            institution = institution_cell.get_text(" ", strip=True)
            if not site_title or not institution:
                continue

            application_url = normalize_url(urljoin(self.url, link["href"]))
            records.append(
                CanonicalOpportunity(
                    title=f"Research Position: {site_title}",
                    description=(
                        f"Research opportunity at {institution}. Participate in cutting-edge research "
                        "projects and gain hands-on experience in your field."
                    ),
                    organization=institution,
                    category="research",
                    location=institution,
                    is_remote=False,
                    compensation="stipend",
                    requirements=["Undergraduate status", "Strong academic record", "Research interest"],
                    skills=["Research methodology", "Data analysis", "Academic writing"],
                    application_url=application_url,
                    deadline=days_from_now(90),
                    source=self.source,
                    external_id=url_identity(application_url),
                    tags=["research", "undergraduate", "nsf"],
                    estimated_hours=40,
                    duration="summer",
                )
            )
            if len(records) >= MAX_RECORDS_PER_SOURCE:
                break
        return records

    def static_fallback(self) -> list[CanonicalOpportunity]:
        return [
            CanonicalOpportunity(
                title="Undergraduate Research Assistant - Computer Science",
                description=(
                    "Join our AI research lab to work on machine learning projects. Gain hands-on "
                    "experience with neural networks and publish research papers."
                ),
                organization="University Research Lab",
                category="research",
                location="Various Universities",
                is_remote=True,
                compensation="stipend",
                requirements=["Computer Science major", "Programming experience", "GPA 3.0+"],
                skills=["Python", "Machine Learning", "Research Methods"],
                application_url="https://www.nsf.gov/crssprgm/reu/",
                deadline=days_from_now(60),
                source="university-labs",
                external_id="research-cs-001",
                tags=["ai", "machine-learning", "undergraduate"],
                estimated_hours=20,
                duration="semester",
            )
        ]


class RemoteOkAdapter(SourceAdapter):
    """RemoteOK public API; the first array element is a legal/metadata notice."""

    source = "remoteok"
    name = "Startup Opportunities"
    categories = frozenset({"startup"})
    uses_static_fallback = True
    default_url = "https://remoteok.io/api"

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        response = await self._request(client, "GET", self.url, headers={"Accept": "application/json"})
        return self.parse(self._json(response))

    def parse(self, payload: Any) -> list[CanonicalOpportunity]:
        if not isinstance(payload, list):
            raise ProviderParseError(self.source, "expected a JSON array")

        records: list[CanonicalOpportunity] = []
        for job in payload[1:]:
            if not isinstance(job, dict):
                continue
            position = as_text(job.get("position"))
            company = as_text(job.get("company"))
            if not position or not company:
                continue

            tags = as_text_list(job.get("tags"))
            has_salary = bool(as_text(job.get("salary"))) or bool(as_float(job.get("salary_min")))
            application_url = as_text(job.get("url")) or f"https://remoteok.io/remote-jobs/{job.get('id')}"
            description = as_text(job.get("description"))
            if description:
                description = clean_description(description, max_chars=500)
            else:
                description = (
                    f"{position} position at {company}. Work remotely on exciting projects and gain "
                    "valuable experience in a dynamic environment."
                )
            records.append(
                CanonicalOpportunity(
                    title=position,
                    description=description,
                    organization=company,
                    category="startup",
                    location=as_text(job.get("location")) or "Remote",
                    is_remote=True,
                    compensation="paid" if has_salary else "unpaid",
                    requirements=tags[:3] or ["Technical skills", "Remote work experience", "Self-motivated"],
                    skills=tags[:5] or ["Programming", "Communication", "Problem solving"],
                    application_url=normalize_url(application_url),
                    deadline=days_from_now(30),
                    source=self.source,
                    external_id=as_text(job.get("id")) or _slug(position),
                    tags=tags[:3] or ["remote", "startup", "tech"],
                    estimated_hours=40,
                    duration="ongoing",
                    salary_min=as_float(job.get("salary_min")) or None,
                    salary_max=as_float(job.get("salary_max")) or None,
                    posted_date=parse_timestamp(job.get("date")),
                )
            )
            if len(records) >= MAX_RECORDS_PER_SOURCE:
                break
        return records

    def static_fallback(self) -> list[CanonicalOpportunity]:
        return [
            CanonicalOpportunity(
                title="Product Management Intern",
                description=(
                    "Join a fast-growing fintech startup as a Product Management Intern. Work directly "
                    "with founders to shape product strategy and user experience."
                ),
                organization="TechFlow Startup",
                category="startup",
                location="San Francisco, CA",
                is_remote=True,
                compensation="paid",
                requirements=["Business or Computer Science background", "Analytical thinking", "User empathy"],
                skills=["Product Strategy", "User Research", "Data Analysis"],
                application_url="https://wellfound.com/jobs",
                deadline=days_from_now(45),
                source="startup-directory",
                external_id="startup-pm-001",
                tags=["product", "fintech", "internship"],
                estimated_hours=30,
                duration="semester",
            ),
            CanonicalOpportunity(
                title="Software Engineer - Early Stage Startup",
                description=(
                    "Join our team as the 3rd engineer at an early-stage startup building developer "
                    "tools. Work with cutting-edge technology and have direct impact."
                ),
                organization="DevTools Inc",
                category="startup",
                location="Remote",
                is_remote=True,
                compensation="equity",
                requirements=["Strong programming skills", "Startup mindset", "Full-stack experience"],
                skills=["React", "Node.js", "PostgreSQL"],
                application_url="https://wellfound.com/jobs",
                deadline=days_from_now(30),
                source="startup-directory",
                external_id="startup-eng-001",
                tags=["engineering", "early-stage", "remote"],
                estimated_hours=40,
                duration="ongoing",
            ),
        ]


class UsaJobsAdapter(SourceAdapter):
    """USAJOBS search API, used as the government research feed."""

    source = "usajobs"
    name = "Government Opportunities"
    categories = frozenset({"research"})
    default_url = "https://data.usajobs.gov/api/jobs"

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        params = {
            "Keyword": hints.keyword or "technology",
            "NumberOfJobs": MAX_RECORDS_PER_SOURCE,
        }
        response = await self._request(
            client,
            "GET",
            self.url,
            params=params,
            headers={"Accept": "application/json"},
        )
        return self.parse(self._json(response))

    def parse(self, payload: Any) -> list[CanonicalOpportunity]:
        if not isinstance(payload, dict):
            raise ProviderParseError(self.source, "expected a JSON object")
        search_result = payload.get("SearchResult")
        items = search_result.get("SearchResultItems") if isinstance(search_result, dict) else None
        if not isinstance(items, list):
            return []

        records: list[CanonicalOpportunity] = []
        for item in items[:MAX_RECORDS_PER_SOURCE]:
            job = item.get("MatchedObjectDescriptor") if isinstance(item, dict) else None
            if not isinstance(job, dict):
                continue
            title = as_text(job.get("PositionTitle"))
            if not title:
                continue

            organization = as_text(job.get("OrganizationName")) or "U.S. Government"
            location = as_text(job.get("PositionLocationDisplay")) or "Various Locations"
            user_area = job.get("UserArea") if isinstance(job.get("UserArea"), dict) else {}
            details = user_area.get("Details") if isinstance(user_area.get("Details"), dict) else {}
            apply_uris = as_text_list(job.get("ApplyURI"))
            records.append(
                CanonicalOpportunity(
                    title=title,
                    description=as_text(details.get("JobSummary"))
                    or f"Government position: {title} at {organization}",
                    organization=organization,
                    category="research",
                    location=location,
                    is_remote="remote" in location.lower(),
                    compensation="paid",
                    requirements=[
                        "U.S. Citizenship",
                        "Security clearance eligible",
                        "Relevant education/experience",
                    ],
                    skills=["Government operations", "Policy analysis", "Project management"],
                    application_url=normalize_url(apply_uris[0]) if apply_uris else "https://www.usajobs.gov",
                    deadline=parse_timestamp(job.get("ApplicationCloseDate")) or days_from_now(30),
                    source=self.source,
                    external_id=as_text(job.get("PositionID")) or _slug(title),
                    tags=["government", "federal", "technology"],
                    estimated_hours=40,
                    duration="ongoing",
                    posted_date=parse_timestamp(job.get("PublicationStartDate")),
                )
            )
        return records


class JustServeAdapter(SourceAdapter):
    """JustServe volunteer directory; results are wrapped in ``opportunities``."""

    source = "justserve"
    name = "Nonprofit Opportunities"
    categories = frozenset({"nonprofit", "volunteer"})
    uses_static_fallback = True
    default_url = "https://www.justserve.org/api/opportunities"

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        params: dict[str, Any] = {"limit": MAX_RECORDS_PER_SOURCE, "format": "json"}
        if hints.keyword:
            params["q"] = hints.keyword
        response = await self._request(
            client,
            "GET",
            self.url,
            params=params,
            headers={"Accept": "application/json"},
        )
        return self.parse(self._json(response))

    def parse(self, payload: Any) -> list[CanonicalOpportunity]:
        if not isinstance(payload, dict):
            raise ProviderParseError(self.source, "expected a JSON object")
        opportunities = payload.get("opportunities")
        if not isinstance(opportunities, list):
            return []

        records: list[CanonicalOpportunity] = []
        for opp in opportunities[:MAX_RECORDS_PER_SOURCE]:
            if not isinstance(opp, dict):
                continue
            records.append(
                CanonicalOpportunity(
                    title=as_text(opp.get("title")) or "Volunteer Opportunity",
                    description=as_text(opp.get("description"))
                    or "Make a difference in your community while gaining valuable experience and skills.",
                    organization=as_text(opp.get("organization")) or "Community Organization",
                    category="nonprofit",
                    location=as_text(opp.get("location")) or "Various Locations",
                    is_remote=bool(opp.get("virtual")),
                    compensation="unpaid",
                    requirements=["Passion for social impact", "Reliable commitment", "Team collaboration"],
                    skills=["Communication", "Project Management", "Community Outreach"],
                    application_url=normalize_url(as_text(opp.get("url")) or "https://www.justserve.org"),
                    deadline=parse_timestamp(opp.get("deadline")) or days_from_now(60),
                    source=self.source,
                    external_id=as_text(opp.get("id")),
                    tags=["volunteer", "social-impact", "community"],
                    estimated_hours=10,
                    duration="ongoing",
                )
            )
        return records

    def static_fallback(self) -> list[CanonicalOpportunity]:
        return [
            CanonicalOpportunity(
                title="Code for America Brigade Member",
                description=(
                    "Join your local Code for America brigade to build technology solutions for civic "
                    "problems. Work with government partners to improve digital services."
                ),
                organization="Code for America",
                category="nonprofit",
                location="Various Cities",
                is_remote=True,
                compensation="unpaid",
                requirements=["Programming skills", "Civic interest", "Weekend availability"],
                skills=["Web Development", "Data Analysis", "User Experience"],
                application_url="https://www.codeforamerica.org/join",
                deadline=days_from_now(90),
                source="codeforamerica",
                external_id="cfa-brigade-001",
                tags=["civic-tech", "volunteer", "coding"],
                estimated_hours=8,
                duration="ongoing",
            ),
            CanonicalOpportunity(
                title="Wikipedia Content Editor",
                description=(
                    "Help improve the world's largest encyclopedia by editing articles, fact-checking, "
                    "and contributing to knowledge sharing."
                ),
                organization="Wikimedia Foundation",
                category="nonprofit",
                location="Remote",
                is_remote=True,
                compensation="unpaid",
                requirements=["Research skills", "Attention to detail", "Neutral point of view"],
                skills=["Writing", "Research", "Fact-checking"],
                application_url="https://en.wikipedia.org/wiki/Wikipedia:Contributing_to_Wikipedia",
                deadline=days_from_now(365),
                source="wikipedia",
                external_id="wikipedia-editor-001",
                tags=["education", "knowledge", "volunteer"],
                estimated_hours=5,
                duration="ongoing",
            ),
            CanonicalOpportunity(
                title="Khan Academy Content Reviewer",
                description=(
                    "Help review and improve educational content on Khan Academy. Support learners "
                    "worldwide by ensuring high-quality educational materials."
                ),
                organization="Khan Academy",
                category="nonprofit",
                location="Remote",
                is_remote=True,
                compensation="unpaid",
                requirements=["Subject matter expertise", "Teaching experience", "Passion for education"],
                skills=["Education", "Content Review", "Subject Matter Expertise"],
                application_url="https://www.khanacademy.org/contribute",
                deadline=days_from_now(180),
                source="khanacademy",
                external_id="khan-reviewer-001",
                tags=["education", "remote", "volunteer"],
                estimated_hours=6,
                duration="ongoing",
            ),
        ]


class CampusOrgsAdapter(SourceAdapter):
    """Student organization roles; there is no public campus feed, only curated entries."""

    source = "campus-orgs"
    name = "Student Organization Opportunities"
    categories = frozenset({"student-org"})
    uses_static_fallback = True

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        raise ProviderUnavailableError(self.source, "no live feed")

    def static_fallback(self) -> list[CanonicalOpportunity]:
        return [
            CanonicalOpportunity(
                title="Hackathon Event Coordinator",
                description=(
                    "Help organize the annual campus hackathon. Coordinate with sponsors, manage "
                    "logistics, and support participants during the 48-hour event."
                ),
                organization="Computer Science Student Association",
                category="student-org",
                location="Campus Events Center",
                is_remote=False,
                compensation="academic-credit",
                requirements=["Event planning interest", "Strong organizational skills", "Technology enthusiasm"],
                skills=["Event Planning", "Team Coordination", "Vendor Management"],
                application_url="mailto:hackathon@university.edu",
                deadline=days_from_now(21),
                source=self.source,
                external_id="student-hackathon-001",
                tags=["hackathon", "technology", "leadership"],
                estimated_hours=25,
                duration="one-time",
            ),
            CanonicalOpportunity(
                title="Peer Career Advisor",
                description=(
                    "Provide career guidance to fellow students, help with resume reviews, and "
                    "facilitate networking events with industry professionals."
                ),
                organization="Career Development Club",
                category="student-org",
                location="Career Services Office",
                is_remote=False,
                compensation="academic-credit",
                requirements=["Junior/Senior status", "Career development knowledge", "Interpersonal skills"],
                skills=["Career Counseling", "Resume Review", "Networking"],
                application_url="https://careers.university.edu/peer-advisor",
                deadline=days_from_now(14),
                source=self.source,
                external_id="student-advisor-001",
                tags=["career", "advising", "peer-support"],
                estimated_hours=10,
                duration="semester",
            ),
            CanonicalOpportunity(
                title="Social Impact Project Lead",
                description=(
                    "Lead a team of students in developing solutions for local community challenges. "
                    "Present your project at the annual Social Innovation Showcase."
                ),
                organization="Social Innovation Society",
                category="student-org",
                location="Innovation Lab",
                is_remote=False,
                compensation="unpaid",
                requirements=["Leadership experience", "Community service interest", "Project management skills"],
                skills=["Project Management", "Social Innovation", "Team Leadership"],
                application_url="https://innovation.university.edu/apply",
                deadline=days_from_now(35),
                source=self.source,
                external_id="student-impact-001",
                tags=["social-impact", "leadership", "innovation"],
                estimated_hours=20,
                duration="semester",
            ),
        ]
