"""
Setup verification script for the Comply-Desk kit generator.
Checks dependencies, configuration and the OpenAI credential.
"""
import asyncio
import sys
import os
from typing import List, Tuple

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_status(message: str, status: bool):
    """Print colored status message."""
    symbol = f"{GREEN}✓{RESET}" if status else f"{RED}✗{RESET}"
    print(f"{symbol} {message}")


async def check_python_version() -> bool:
    """Check Python version is 3.10+."""
    version = sys.version_info
    if version.major == 3 and version.minor >= 10:
        print_status(f"Python version: {version.major}.{version.minor}.{version.micro}", True)
        return True
    else:
        print_status(f"Python version {version.major}.{version.minor} (requires 3.10+)", False)
        return False


async def check_dependencies() -> bool:
    """Check if required packages are installed."""
    required_packages = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "pydantic_settings",
        "httpx",
        "docx",
    ]

    all_installed = True
    for package in required_packages:
        try:
            __import__(package)
            print_status(f"Package '{package}' installed", True)
        except ImportError:
            print_status(f"Package '{package}' missing", False)
            all_installed = False

    return all_installed


async def check_env_file() -> bool:
    """Check if .env file exists."""
    if os.path.exists(".env"):
        print_status(".env file exists", True)
        return True
    else:
        print_status(".env file missing (copy from .env.example)", False)
        return False


async def check_catalog() -> bool:
    """Check the product catalog loads."""
    from app.config import settings
    from app.services.catalog import CatalogError, ProductCatalog

    try:
        catalog = ProductCatalog.from_file()
    except CatalogError as e:
        print_status(str(e), False)
        return False

    print_status(f"Catalog {settings.PRODUCTS_FILE}: {len(catalog)} products", len(catalog) > 0)
    return len(catalog) > 0


async def check_openai() -> bool:
    """Check the OpenAI key is set and accepted."""
    from app.config import settings

    if not settings.OPENAI_API_KEY:
        print_status("OPENAI_API_KEY not set", False)
        print(f"  {YELLOW}Add OPENAI_API_KEY=... to .env{RESET}")
        return False

    try:
        import httpx

        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                f"{settings.OPENAI_BASE_URL.rstrip('/')}/models/{settings.OPENAI_MODEL}",
                headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}"},
            )

        if response.status_code == 200:
            print_status(f"OpenAI key accepted, model {settings.OPENAI_MODEL} available", True)
            return True
        print_status(f"OpenAI API error (status {response.status_code})", False)
        return False

    except Exception as e:
        print_status(f"OpenAI connection failed: {str(e)}", False)
        return False


async def main():
    """Run all verification checks."""
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}Comply-Desk Kit Generator - Setup Verification{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

    checks: List[Tuple[str, callable]] = [
        ("Python Version", check_python_version),
        ("Dependencies", check_dependencies),
        ("Environment File", check_env_file),
        ("Product Catalog", check_catalog),
        ("OpenAI Credential", check_openai),
    ]

    results = []

    for check_name, check_func in checks:
        print(f"\n{BLUE}Checking {check_name}...{RESET}")
        try:
            result = await check_func()
            results.append(result)
        except Exception as e:
            print_status(f"Error during check: {str(e)}", False)
            results.append(False)

    # Summary
    print(f"\n{BLUE}{'='*60}{RESET}")
    passed = sum(results)
    total = len(results)

    if passed == total:
        print(f"{GREEN}✓ All checks passed! ({passed}/{total}){RESET}")
        print(f"\n{GREEN}You're ready to run the backend:{RESET}")
        print(f"  uvicorn app.main:app --reload")
    else:
        print(f"{RED}✗ Some checks failed ({passed}/{total} passed){RESET}")
        print(f"\n{YELLOW}Please fix the issues above before running the backend.{RESET}")
        sys.exit(1)

    print(f"{BLUE}{'='*60}{RESET}\n")


if __name__ == "__main__":
    asyncio.run(main())
