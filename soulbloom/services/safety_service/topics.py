"""Sensitive topic definitions and their support resources.

Declaration order is the order topics are reported in.
"""
from dataclasses import dataclass
from typing import Dict, Tuple

from soulbloom.shared.models import TopicResource


@dataclass(frozen=True)
class TopicDefinition:
    """Detection keywords and resource for one sensitive topic."""
    topic_id: str
    display_name: str
    keywords: Tuple[str, ...]
    resource: TopicResource


TOPIC_DEFINITIONS: Tuple[TopicDefinition, ...] = (
    TopicDefinition(
        topic_id="domestic_violence",
        display_name="relationship safety",
        keywords=(
            "hit me", "hits me", "hitting me",
            "abusive", "abuse", "abused",
            "scared of partner", "scared of him", "scared of her",
            "controlling", "controls me", "won't let me",
            "threatens me", "threatened me", "threatening",
            "hurts me", "hurt me", "violent",
            "beats me", "beat me", "beating",
            "chokes me", "choked me", "strangled",
        ),
        resource=TopicResource(
            name="National Domestic Violence Hotline",
            description="Free, confidential support 24/7 for anyone experiencing domestic violence",
            phone="1-800-799-7233",
            url="https://www.thehotline.org",
            text_instructions="Text START to 88788",
        ),
    ),
    TopicDefinition(
        topic_id="substance_abuse",
        display_name="substance use",
        keywords=(
            "drinking too much", "drinking again", "can't stop drinking",
            "using again", "started using", "relapsed",
            "drugs", "drug use", "getting high",
            "alcohol", "alcoholic", "drunk",
            "addiction", "addicted", "addict",
            "withdrawal", "detox", "sober",
            "pills", "opioids", "cocaine", "meth",
            "can't quit", "need to use",
        ),
        resource=TopicResource(
            name="SAMHSA National Helpline",
            description="Free, confidential treatment referrals and support 24/7",
            phone="1-800-662-4357",
            url="https://www.samhsa.gov/find-help/national-helpline",
        ),
    ),
    TopicDefinition(
        topic_id="eating_disorder",
        display_name="eating and body image",
        keywords=(
            "purging", "purge", "throwing up food",
            "starving myself", "not eating", "restricting",
            "binge", "bingeing", "binge eating",
            "restrict", "restricting food",
            "calories", "counting calories obsessively",
            "anorexia", "anorexic",
            "bulimia", "bulimic",
            "laxatives", "diet pills",
            "too fat", "hate my body", "body image",
            "afraid to eat", "scared to eat",
        ),
        resource=TopicResource(
            name="National Eating Disorders Association (NEDA)",
            description="Support, resources, and treatment options for eating disorders",
            phone="1-800-931-2237",
            url="https://www.nationaleatingdisorders.org",
            text_instructions="Text NEDA to 741741",
        ),
    ),
    TopicDefinition(
        topic_id="financial_stress",
        display_name="financial challenges",
        keywords=(
            "debt", "in debt", "drowning in debt",
            "can't pay rent", "can't afford rent",
            "homeless", "losing my home", "no place to live",
            "eviction", "evicted", "being evicted",
            "bankrupt", "bankruptcy", "going bankrupt",
            "can't pay bills", "bills piling up",
            "no money", "broke", "financial trouble",
            "losing everything", "foreclosure",
        ),
        resource=TopicResource(
            name="211 Community Resources",
            description="Connect to local financial assistance, housing help, and community resources",
            phone="211",
            url="https://www.211.org",
            text_instructions="Text your ZIP code to 898211",
        ),
    ),
    TopicDefinition(
        topic_id="grief",
        display_name="loss and grief",
        keywords=(
            "died", "death", "passed away",
            "lost my", "losing my", "lost someone",
            "funeral", "memorial",
            "grieving", "grief", "mourning",
            "miss them", "miss him", "miss her",
            "gone forever", "never see again",
            "widow", "widower", "orphan",
            "terminal", "dying",
        ),
        resource=TopicResource(
            name="GriefShare",
            description="Support groups and resources for those grieving the loss of a loved one",
            phone="1-800-395-5755",
            url="https://www.griefshare.org",
        ),
    ),
    TopicDefinition(
        topic_id="self_harm",
        display_name="self-harm",
        keywords=(
            "cutting", "cut myself", "cutting myself",
            "hurting myself", "hurt myself", "self-harm",
            "burn myself", "burning myself",
            "scratching myself", "scratch myself",
            "hitting myself", "punching walls",
            "want to hurt myself", "harming myself",
            "self-injury", "self injury",
        ),
        resource=TopicResource(
            name="Crisis Text Line",
            description="Free, confidential support via text message, available 24/7",
            url="https://www.crisistextline.org",
            text_instructions="Text HOME to 741741",
        ),
    ),
    TopicDefinition(
        topic_id="lgbtq_support",
        display_name="LGBTQ+ identity",
        keywords=(
            "coming out", "closeted", "in the closet",
            "gay", "lesbian", "bisexual", "transgender", "trans",
            "queer", "lgbtq", "lgbt",
            "gender identity", "sexual orientation",
            "not accepted", "family doesn't accept",
            "conversion", "pray away",
        ),
        resource=TopicResource(
            name="The Trevor Project",
            description="Crisis intervention and suicide prevention for LGBTQ+ young people",
            phone="1-866-488-7386",
            url="https://www.thetrevorproject.org",
            text_instructions="Text START to 678-678",
        ),
    ),
    TopicDefinition(
        topic_id="veteran_support",
        display_name="veteran experiences",
        keywords=(
            "veteran", "military", "served",
            "combat", "deployment", "deployed",
            "ptsd", "post-traumatic",
            "service member", "armed forces",
            "war", "battlefield", "tour of duty",
        ),
        resource=TopicResource(
            name="Veterans Crisis Line",
            description="Free, confidential support for Veterans and their loved ones 24/7",
            phone="988 (then press 1)",
            url="https://www.veteranscrisisline.net",
            text_instructions="Text 838255",
        ),
    ),
)

TOPICS_BY_ID: Dict[str, TopicDefinition] = {t.topic_id: t for t in TOPIC_DEFINITIONS}

SELF_HARM_TOPIC_ID = "self_harm"
