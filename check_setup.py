"""
Setup Check for CONTXTRA
Run this to verify your environment, Supabase project, and analysis endpoint are wired correctly
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

REQUIRED_VARS = [
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_KEY",
]

OPTIONAL_VARS = [
    "ANALYSIS_API_URL",
    "IP_LOOKUP_URL",
    "ANALYSIS_TIMEOUT_SECONDS",
    "CONTXTRA_DATA_DIR",
]

MODULES = [
    "app_config",
    "models",
    "analysis_api",
    "database",
    "trial_quota",
    "history_cache",
    "rating",
    "progress",
    "orchestrator",
    "admin_stats",
]


def check_environment() -> list[str]:
    """Return the names of missing required variables"""
    print("TEST 1: Checking environment variables...")

    missing = []
    for var in REQUIRED_VARS:
        value = os.getenv(var)
        if value:
            # Show partial value for security
            display_value = value[:20] + "..." if len(value) > 20 else value
            print(f"  ✓ {var}: {display_value}")
        else:
            print(f"  ✗ {var}: MISSING")
            missing.append(var)

    for var in OPTIONAL_VARS:
        print(f"  · {var}: {os.getenv(var) or '(default)'}")

    print()
    return missing


def check_supabase() -> bool:
    print("TEST 2: Testing Supabase connection and profiles table...")

    try:
        from database import get_supabase_client

        supabase = get_supabase_client(service=True)
        supabase.table('profiles').select("id").limit(1).execute()
        print("  ✓ Connected to Supabase")
        print("  ✓ Table 'profiles' accessible")
    except Exception as e:
        print(f"  ✗ Connection failed: {e}")
        print("   Possible issues:")
        print("   - Check your SUPABASE_URL and keys")
        print("   - Make sure the profiles table and RPC functions exist")
        print("   - Check if your Supabase project is paused")
        return False

    try:
        supabase.rpc('check_trial_usage', {'client_ip': '0.0.0.0'}).execute()
        print("  ✓ RPC 'check_trial_usage' callable")
    except Exception as e:
        print(f"  ✗ RPC 'check_trial_usage' failed: {e}")
        return False

    print()
    return True


def check_modules() -> list[str]:
    print("TEST 3: Importing application modules...")

    failed = []
    for name in MODULES:
        try:
            __import__(name)
            print(f"  ✓ {name}")
        except Exception as e:
            print(f"  ✗ {name}: {e}")
            failed.append(name)

    print()
    return failed


def main() -> int:
    print("=" * 70)
    print("CONTXTRA SETUP CHECK")
    print("=" * 70)
    print()

    missing = check_environment()
    if missing:
        print(f"❌ Missing variables: {', '.join(missing)}")
        print("   Please add them to your .env file")
        return 1

    failed_modules = check_modules()
    if failed_modules:
        print(f"❌ Modules failed to import: {', '.join(failed_modules)}")
        return 1

    if not check_supabase():
        print("❌ Supabase check failed!")
        return 1

    print("=" * 70)
    print("✅ Environment variables: OK")
    print("✅ Application modules: OK")
    print("✅ Supabase: OK")
    print()
    print("NEXT STEPS:")
    print("1. Run your app: streamlit run app.py")
    print("2. Analyze a post anonymously and watch the trial counter")
    print("3. Create an account and check the Posts Analysed counter")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
