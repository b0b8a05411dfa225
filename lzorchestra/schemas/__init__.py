"""
Schemas for lzorchestra orchestration.

Frozen dataclasses describing the invocation scope, the stage/module graph,
synthesizer strategies, credentials, scoped policies and legacy imports.
"""

from .context import DeploymentContext, ExecutionPhase
from .credential import AssumedCredential
from .imports import ImportMappingEntry, ImportPhase
from .policy import ROOT_OU, DeploymentTargets, PolicySet, ResourcePolicy
from .stage import ModuleDefinition, StageDefinition
from .synthesizer import SynthesizerConfig, SynthesizerStrategy

__all__ = [
    "DeploymentContext",
    "ExecutionPhase",
    "AssumedCredential",
    "ImportMappingEntry",
    "ImportPhase",
    "ROOT_OU",
    "DeploymentTargets",
    "PolicySet",
    "ResourcePolicy",
    "ModuleDefinition",
    "StageDefinition",
    "SynthesizerConfig",
    "SynthesizerStrategy",
]
