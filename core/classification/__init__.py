"""
Classification Module

프롬프트 분류 결과에 따라 채팅 경로와 founders mode 경로를 나눕니다.
"""

from core.classification.classifier import Classification, IdeaClassifier

__all__ = ["Classification", "IdeaClassifier"]
