# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the Ambassador Client stdio MCP proxy
"""

from setuptools import setup, find_packages

setup(
    name="mcpambassador-client",
    version="0.1.0",
    description="stdio MCP proxy that relays tool calls to an Ambassador Server",
    author="Jason Cafarelli",
    packages=find_packages(include=["ambassador_client", "ambassador_client.*"]),
    python_requires=">=3.9",
    install_requires=[
        "aiohttp>=3.9",
        "pydantic>=2.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.23",
        ]
    },
    entry_points={
        "console_scripts": [
            "mcpambassador-client=ambassador_client.cli:main",
        ]
    },
)
