"""Prompt templates for the live discovery strategy."""

from __future__ import annotations

import json
from collections.abc import Sequence

from app.models.icp import ICP
from app.models.prospect import SearchResult

SYSTEM_PROMPT = (
    "You are a B2B market analyst helping a sales team find look-alike prospects. "
    "Always answer with a single strict JSON object and nothing else. "
    "Use British English spelling and terminology."
)

ICP_PROMPT = """Extract the Ideal Customer Profile (ICP) from the website content below.

Identify:
1. The solution the company sells (one sentence)
2. The workflows it improves for its customers
3. Target industries (specific sectors or verticals)
4. Buyer roles (job titles who make the purchase decision)
5. Firmographics (company size, geography)

Output JSON:
{{
  "solution": "...",
  "workflows": ["workflow1", "workflow2"],
  "industries": ["industry1", "industry2"],
  "buyerRoles": ["role1", "role2"],
  "firmographics": {{"size": "small/medium/large/enterprise", "geo": "primary geography"}}
}}

Website content:
{website_text}"""

COMPETITOR_PROMPT = """Identify direct look-alike companies for a customer of ours.

Customer: {customer_name} ({customer_domain})
ICP:
{icp}

Search results:
{search_results}

List up to {limit} real companies (not articles, directories or lists) that serve the same
industries, run the same workflows and sell to the same buyer roles.

Output JSON:
{{
  "competitors": [
    {{
      "name": "Company Name",
      "domain": "company.com",
      "rationale": "Brief explanation of similarity",
      "evidenceUrls": ["url1", "url2"],
      "confidence": 85
    }}
  ]
}}"""

COMPANY_EXTRACTION_PROMPT = """Extract real companies that match the ICP from these search results.

ICP:
{icp}

Companies the user rated highly (find more like these):
{exemplars}

Do not return any of these domains:
{exclude}

Search results:
{search_results}

Return at most {limit} companies. Only include businesses with their own website.

Output JSON:
{{
  "companies": [
    {{
      "name": "Company Name",
      "domain": "company.com",
      "rationale": "Why this company matches the ICP",
      "evidenceUrls": ["url1"],
      "confidence": 70
    }}
  ]
}}"""

COMPETITOR_NAMES_PROMPT = """From the search results below, list up to {limit} direct competitors of {company_name}.
Only include real company names, never article titles.

Search results:
{search_results}

Output JSON:
{{"competitors": [{{"name": "Company Name", "domain": "company.com or empty"}}]}}"""

FIT_PROMPT = """Score how well this company matches the Ideal Customer Profile.

Company: {name} ({domain})
ICP:
{icp}

Website content:
{website_text}

Rules:
- icpScore 0-100: industry match matters most, then workflow fit, then buyer roles.
- evidence: up to 5 items quoting the website or public pages that prove the match.
- confidence 0-100: how sure you are, given the evidence.

Output JSON:
{{
  "rationale": "Two or three sentences naming the matched industry, workflow and buyer role",
  "confidence": 70,
  "evidence": [{{"url": "https://...", "snippet": "..."}}],
  "icpScore": 65
}}"""

ADS_PROMPT = """Write persona-aware B2B ad copy for a group of prospects.

Industry: {industry}
Workflow: {workflow}
Buyer roles: {buyer_roles}

The copy must address the workflow pain, speak to the buyer roles and end with a clear
call-to-action.

Output JSON:
{{
  "headline": "Compelling headline (max 60 chars)",
  "lines": ["First body line addressing the pain", "Second body line with the value"],
  "cta": "Clear call-to-action"
}}"""


def render_icp(icp: ICP) -> str:
    return json.dumps(icp.to_wire(), indent=2)


def render_search_results(results: Sequence[SearchResult]) -> str:
    if not results:
        return "None"
    return "\n\n".join(
        f"{index}. {result.title}\n   {result.snippet}\n   {result.url}"
        for index, result in enumerate(results, start=1)
    )
