from setuptools import setup, find_packages

setup(
    name="vault-automation",
    version="0.1.0",
    description="Workflow execution engine for markdown-embedded automations",
    packages=find_packages(include=["vault_automation", "vault_automation.*"]),
    install_requires=[
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
        "aiohttp>=3.8.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.0.0",
        ],
    },
    python_requires=">=3.8",
)
