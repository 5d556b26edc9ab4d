# backend/pgstay/cli/__main__.py
from __future__ import annotations

import argparse
from datetime import datetime

from pgstay.cli.seed_demo import seed_demo
from pgstay.db import session_scope
from pgstay.domain.modules import DEFAULT_PLANS
from pgstay.models import Organization
from pgstay.services.bulk_generation import NoActiveEntities, generate_rent, generate_salary


def _add_period_args(sp: argparse.ArgumentParser) -> None:
    now = datetime.utcnow()
    sp.add_argument("--org-slug", required=True)
    sp.add_argument("--month", type=int, default=now.month)
    sp.add_argument("--year", type=int, default=now.year)
    sp.add_argument("--property-id", type=int, default=None)


def _generate(args: argparse.Namespace, generate) -> dict:
    with session_scope() as db:
        org = db.query(Organization).filter(Organization.slug == args.org_slug).one_or_none()
        if org is None:
            return {"ok": False, "error": f"unknown org: {args.org_slug}"}
        try:
            result = generate(db, org_id=int(org.id), month=args.month, year=args.year, property_id=args.property_id)
        except NoActiveEntities as e:
            return {"ok": False, "error": str(e)}
        return {
            "ok": True,
            "billing_period": result.billing_period,
            "created": result.count,
            "skipped": result.skipped,
            "record_ids": result.record_ids,
        }


def main() -> None:
    p = argparse.ArgumentParser(prog="python -m pgstay.cli")
    sub = p.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed-demo", help="create a demo org with a property, rooms, tenants and staff")
    seed.add_argument("--org-slug", default="demo")
    seed.add_argument("--org-name", default="Demo PG")
    seed.add_argument("--user-email", default="owner@demo.local")
    seed.add_argument("--user-name", default="Owner")
    seed.add_argument("--password", default=None)
    seed.add_argument("--plan-code", default="professional", choices=sorted(DEFAULT_PLANS))
    seed.add_argument("--no-sample-property", action="store_true")

    _add_period_args(sub.add_parser("generate-rent", help="open the month's rent records"))
    _add_period_args(sub.add_parser("generate-salary", help="open the month's salary records"))

    args = p.parse_args()

    if args.command == "seed-demo":
        out = seed_demo(
            org_slug=args.org_slug,
            org_name=args.org_name,
            user_email=args.user_email,
            user_name=args.user_name,
            password=args.password,
            plan_code=args.plan_code,
            create_sample_property=(not args.no_sample_property),
        )
        print(
            {
                "ok": True,
                "org_slug": out.org_slug,
                "user_email": out.user_email,
                "plan_code": out.plan_code,
                "sample_property_id": out.property_id,
                "tenants": out.tenants,
                "staff": out.staff,
            }
        )
    elif args.command == "generate-rent":
        print(_generate(args, generate_rent))
    else:
        print(_generate(args, generate_salary))


if __name__ == "__main__":
    main()
