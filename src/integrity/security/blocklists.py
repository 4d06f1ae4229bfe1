"""Static blocklists and pattern tables used by the credential validators.

Loaded once at import and never mutated. Validators take these through the
``PasswordRules`` / ``EmailRules`` dataclasses so tests can swap them out.
"""

from types import MappingProxyType

# =============================================================================
# Password Tables
# =============================================================================

# Most common passwords (compared after lowercasing and normalization)
COMMON_PASSWORDS = frozenset(
    [
        "password",
        "password1",
        "password123",
        "123456",
        "12345678",
        "123456789",
        "1234567890",
        "qwerty",
        "qwerty123",
        "abc123",
        "monkey",
        "letmein",
        "dragon",
        "master",
        "login",
        "admin",
        "welcome",
        "shadow",
        "sunshine",
        "princess",
        "football",
        "baseball",
        "iloveyou",
        "trustno1",
        "superman",
        "batman",
        "starwars",
        "hello",
        "charlie",
        "donald",
        "password1!",
        "passw0rd",
        "p@ssword",
        "p@ssw0rd",
        "qwertyuiop",
        "asdfghjkl",
        "zxcvbnm",
        "1q2w3e4r",
        "1qaz2wsx",
        "qazwsx",
        "test123",
        "test1234",
        "testing",
        "access",
        "secret",
        "god",
        "love",
        "sex",
        "money",
        "freedom",
        "ninja",
        "azerty",
        "solo",
        "whatever",
        "michael",
        "jennifer",
        "jordan",
        "hunter",
        "buster",
        "soccer",
        "hockey",
        "ranger",
        "harley",
        "andrew",
        "tigger",
        "joshua",
        "pepper",
        "summer",
        "winter",
        "spring",
        "autumn",
        "thomas",
        "robert",
        "daniel",
        "matthew",
        "anthony",
        "william",
        "joseph",
        "david",
        "richard",
        "charles",
        "christopher",
        "george",
        "edward",
        "brian",
        "ronald",
        "timothy",
        "jason",
        "jeffrey",
        "ryan",
        "jacob",
        "gary",
        "nicholas",
        "eric",
        "jonathan",
        "stephen",
        "larry",
        "justin",
        "scott",
        "brandon",
        "benjamin",
        "samuel",
        "raymond",
        "gregory",
        "frank",
        "alexander",
        "patrick",
        "jack",
        "dennis",
        "jerry",
        "tyler",
        "aaron",
        "jose",
        "adam",
        "nathan",
        "henry",
        "douglas",
        "zachary",
        "peter",
        "kyle",
        "noah",
        "ethan",
        "jeremy",
        "walter",
        "christian",
        "keith",
        "roger",
        "terry",
        "austin",
        "sean",
        "gerald",
        "carl",
        "harold",
        "dylan",
        "arthur",
        "lawrence",
        "jesse",
        "bryan",
        "billy",
        "bruce",
        "gabriel",
        "joe",
        "logan",
        "albert",
        "willie",
        "alan",
        "eugene",
        "russell",
        "vincent",
        "philip",
        "bobby",
        "johnny",
        "bradley",
        "123123",
        "111111",
        "000000",
        "654321",
        "666666",
        "696969",
        "121212",
        "112233",
        "123321",
        "159753",
        "147258",
        "987654",
        "7777777",
        "555555",
        "fuckyou",
        "fuck",
        "asshole",
        "pussy",
        "killer",
        "letmein!",
        "changeme",
        "default",
        "temp",
        "temporary",
        "guest",
        "user",
        "demo",
        "sample",
    ]
)

# Keyboard layout runs; reversed runs are matched too
KEYBOARD_PATTERNS = (
    "qwerty",
    "qwertz",
    "azerty",
    "asdf",
    "zxcv",
    "1234",
    "0987",
    "qazwsx",
    "wsxedc",
    "rfvtgb",
    "yhnujm",
    "plokij",
    "mnbvcx",
    "!@#$%",
    "!@#$%^",
    "!@#$%^&",
    "!@#$%^&*",
    "poiuy",
    "lkjhg",
)

# Six-letter alphabetic runs
SEQUENTIAL_PATTERNS = tuple(
    "abcdefghijklmnopqrstuvwxyz"[i : i + 6] for i in range(26 - 5)
)

# Leetspeak substitutions undone before the common-password lookup
LEET_SUBSTITUTIONS = MappingProxyType(
    {
        "0": "o",
        "1": "i",
        "3": "e",
        "4": "a",
        "5": "s",
        "7": "t",
        "8": "b",
        "@": "a",
        "$": "s",
        "!": "i",
    }
)

# =============================================================================
# Email Tables
# =============================================================================

# Known disposable email domains
DISPOSABLE_DOMAINS = frozenset(
    [
        "10minutemail.com",
        "10minutemail.net",
        "tempmail.com",
        "temp-mail.org",
        "guerrillamail.com",
        "guerrillamail.org",
        "guerrillamail.net",
        "sharklasers.com",
        "mailinator.com",
        "mailinator.net",
        "throwaway.email",
        "throwawaymail.com",
        "fakeinbox.com",
        "getnada.com",
        "tempail.com",
        "dispostable.com",
        "yopmail.com",
        "yopmail.fr",
        "yopmail.net",
        "mytrashmail.com",
        "trash-mail.com",
        "trashmail.com",
        "trashmail.me",
        "trashmail.net",
        "wegwerfmail.de",
        "wegwerfmail.net",
        "spamgourmet.com",
        "mailnesia.com",
        "maildrop.cc",
        "mailsac.com",
        "mohmal.com",
        "tempinbox.com",
        "tempr.email",
        "discard.email",
        "discardmail.com",
        "spambox.us",
        "getairmail.com",
        "mailcatch.com",
        "mailexpire.com",
        "mailmoat.com",
        "mailnull.com",
        "mintemail.com",
        "nowmymail.com",
        "pookmail.com",
        "spamfree24.org",
        "emailondeck.com",
        "emailfake.com",
        "crazymailing.com",
        "tempsky.com",
        "burnermail.io",
        "inboxalias.com",
        "anonymbox.com",
        "fakemailgenerator.com",
        "grr.la",
        "guerrillamail.info",
        "pokemail.net",
        "spam4.me",
        "cool.fr.nf",
        "jetable.fr.nf",
        "mt2009.com",
        "trashemail.de",
        "spamgourmet.net",
        "spamgourmet.org",
        "spamfree24.de",
        "spamfree24.eu",
        "spamfree24.info",
        "spamfree24.net",
        "filzmail.com",
        "mailscrap.com",
        "mailshell.com",
        "mailsiphon.com",
        "mailslite.com",
        "mailzilla.com",
        "mailzilla.org",
        "mytempemail.com",
        "nobulk.com",
        "nospam.ze.tc",
        "nospamfor.us",
        "objectmail.com",
        "obobbo.com",
        "onewaymail.com",
        "owlpic.com",
        "proxymail.eu",
        "rcpt.at",
        "rejectmail.com",
        "rtrtr.com",
        "s0ny.net",
        "safe-mail.net",
        "safetymail.info",
        "safetypost.de",
        "sandelf.de",
        "saynotospams.com",
        "selfdestructingmail.com",
        "sendspamhere.com",
        "shiftmail.com",
        "shortmail.net",
        "shut.name",
        "shut.ws",
        "sibmail.com",
        "sinnlos-mail.de",
        "siteposter.net",
        "skeefmail.com",
        "slaskpost.se",
        "slopsbox.com",
        "smellfear.com",
        "snakemail.com",
        "sneakemail.com",
        "snkmail.com",
        "sofimail.com",
        "sofort-mail.de",
        "sogetthis.com",
        "soodonims.com",
        "spam.la",
        "spam.su",
        "spamavert.com",
        "spambob.com",
        "spambob.net",
        "spambob.org",
        "spambog.com",
        "spambog.de",
        "spambog.net",
        "spambog.ru",
        "spambox.info",
        "spamcannon.com",
        "spamcannon.net",
        "spamcero.com",
        "spamcon.org",
        "spamcorptastic.com",
        "spamcowboy.com",
        "spamcowboy.net",
        "spamcowboy.org",
        "spamday.com",
        "spamex.com",
        "spamfree.eu",
        "spamhole.com",
        "spamify.com",
        "spaminator.de",
        "spamkill.info",
        "spaml.com",
        "spaml.de",
        "spammotel.com",
        "spamobox.com",
        "spamoff.de",
        "spamsalad.in",
        "spamslicer.com",
        "spamspot.com",
        "spamstack.net",
        "spamthis.co.uk",
        "spamthisplease.com",
        "spamtrail.com",
        "spamtroll.net",
        "spoofmail.de",
        "squizzy.de",
        "ssoia.com",
        "startkeys.com",
        "stinkefinger.net",
        "streetwisemail.com",
        "stuffmail.de",
        "supergreatmail.com",
        "supermailer.jp",
        "superrito.com",
        "superstachel.de",
        "suremail.info",
        "tafmail.com",
        "taglead.com",
        "tagmymedia.com",
        "tagyourself.com",
        "talkinator.com",
        "techemail.com",
        "techgroup.me",
        "teewars.org",
        "temp.emeraldwebmail.com",
        "tempalias.com",
        "tempe-mail.com",
        "tempemail.biz",
        "tempemail.com",
        "tempemail.net",
        "tempinbox.co.uk",
        "tempmail.co",
        "tempmail.de",
        "tempmail.eu",
        "tempmail.it",
        "tempmail.net",
        "tempmail.us",
        "tempmail2.com",
        "tempmaildemo.com",
        "tempmailer.com",
        "tempmailer.de",
        "tempomail.fr",
        "temporarily.de",
        "temporarioemail.com.br",
        "temporaryemail.net",
        "temporaryemail.us",
        "temporaryforwarding.com",
        "temporaryinbox.com",
        "temporarymailaddress.com",
        "tempthe.net",
        "thisisnotmyrealemail.com",
        "thismail.net",
        "thismail.ru",
        "throam.com",
        "throwam.com",
        "throwawayemailaddress.com",
        "tilien.com",
        "tittbit.in",
        "tmailinator.com",
        "toiea.com",
        "tokenmail.de",
        "tonymanso.com",
        "toomail.biz",
        "topranklist.de",
        "tradermail.info",
        "trash-amil.com",
        "trash-mail.at",
        "trash-mail.cf",
        "trash-mail.de",
        "trash-mail.ga",
        "trash-mail.gq",
        "trash-mail.ml",
        "trash-mail.tk",
        "trash2009.com",
        "trash2010.com",
        "trash2011.com",
        "trashbox.eu",
        "trashdevil.com",
        "trashdevil.de",
        "trashmail.at",
        "trashmail.io",
        "trashmail.org",
        "trashmail.ws",
        "trashmailer.com",
        "trashymail.com",
        "trashymail.net",
        "guerrillamailblock.com",
        "mailinator2.com",
        "byom.de",
        "trbvm.com",
        "mailforspam.com",
        "fakemail.fr",
        "jetable.org",
        "nada.email",
        "mt2014.com",
        "mt2015.com",
        "wegwerfmail.org",
        "zep-hyr.com",
        "emkei.cz",
        "gmailnator.com",
        "inboxbear.com",
        "mailpoof.com",
        "10minutemail.org",
        "33mail.com",
        "antispam.de",
        "binkmail.com",
        "bobmail.info",
        "bofthew.com",
        "bugmenot.com",
        "bumpymail.com",
        "casualdx.com",
        "chogmail.com",
        "correo.blogos.net",
        "cosmorph.com",
        "courrieltemporaire.com",
        "curryworld.de",
        "dayrep.com",
        "devnullmail.com",
        "dfgh.net",
        "digitalsanctuary.com",
        "e4ward.com",
        "emailias.com",
        "emailisvalid.com",
        "emailsensei.com",
        "emailtemporanea.com",
        "emailtemporanea.net",
        "emailtemporario.com.br",
        "emailthe.net",
        "emailtmp.com",
        "emailwarden.com",
        "ephemail.net",
        "etranquil.com",
        "etranquil.net",
        "etranquil.org",
        "evopo.com",
        "explodemail.com",
        "fastacura.com",
        "fastchevy.com",
        "fastchrysler.com",
        "fastkawasaki.com",
        "fastmazda.com",
        "fastmitsubishi.com",
        "fastnissan.com",
        "fastsubaru.com",
        "fastsuzuki.com",
        "fasttoyota.com",
        "fastyamaha.com",
    ]
)

# Local parts that belong to a role or team rather than a person
ROLE_PREFIXES = frozenset(
    [
        "admin",
        "administrator",
        "webmaster",
        "hostmaster",
        "postmaster",
        "root",
        "abuse",
        "noc",
        "security",
        "support",
        "sales",
        "marketing",
        "info",
        "contact",
        "help",
        "helpdesk",
        "billing",
        "accounts",
        "hr",
        "jobs",
        "careers",
        "recruitment",
        "press",
        "media",
        "pr",
        "legal",
        "compliance",
        "privacy",
        "gdpr",
        "dpo",
        "feedback",
        "suggestions",
        "complaints",
        "orders",
        "returns",
        "refunds",
        "shipping",
        "delivery",
        "tracking",
        "newsletter",
        "subscribe",
        "unsubscribe",
        "noreply",
        "no-reply",
        "donotreply",
        "do-not-reply",
        "mailer-daemon",
        "daemon",
        "null",
        "devnull",
        "dev-null",
        "test",
        "testing",
        "demo",
        "example",
        "sample",
        "office",
        "reception",
        "enquiries",
        "inquiries",
        "general",
        "team",
        "staff",
        "all",
        "everyone",
        "company",
        "corporate",
        "business",
        "partners",
        "affiliates",
        "vendors",
        "suppliers",
        "investors",
        "shareholders",
        "board",
        "management",
        "ceo",
        "cto",
        "cfo",
        "coo",
        "cio",
        "ciso",
        "founder",
        "founders",
        "owner",
        "owners",
    ]
)

# Common misspellings of popular mail domains
DOMAIN_TYPOS = MappingProxyType(
    {
        "gmial.com": "gmail.com",
        "gmal.com": "gmail.com",
        "gmai.com": "gmail.com",
        "gmil.com": "gmail.com",
        "gamil.com": "gmail.com",
        "gnail.com": "gmail.com",
        "gmail.co": "gmail.com",
        "gmail.cm": "gmail.com",
        "gmail.om": "gmail.com",
        "gmail.con": "gmail.com",
        "gmaill.com": "gmail.com",
        "gimail.com": "gmail.com",
        "gemail.com": "gmail.com",
        "hmail.com": "gmail.com",
        "fmail.com": "gmail.com",
        "yaho.com": "yahoo.com",
        "yahooo.com": "yahoo.com",
        "yhoo.com": "yahoo.com",
        "yhaoo.com": "yahoo.com",
        "yaoo.com": "yahoo.com",
        "yahoo.co": "yahoo.com",
        "yahoo.cm": "yahoo.com",
        "yahoo.om": "yahoo.com",
        "yahoo.con": "yahoo.com",
        "hotmal.com": "hotmail.com",
        "hotmai.com": "hotmail.com",
        "hotmial.com": "hotmail.com",
        "hotmil.com": "hotmail.com",
        "hotamil.com": "hotmail.com",
        "hotmail.co": "hotmail.com",
        "hotmail.cm": "hotmail.com",
        "hotnail.com": "hotmail.com",
        "outlok.com": "outlook.com",
        "outloo.com": "outlook.com",
        "outlool.com": "outlook.com",
        "outlook.co": "outlook.com",
        "outlook.cm": "outlook.com",
        "outloook.com": "outlook.com",
        "iclod.com": "icloud.com",
        "icoud.com": "icloud.com",
        "icloud.co": "icloud.com",
        "icloud.cm": "icloud.com",
        "protonmal.com": "protonmail.com",
        "protonmai.com": "protonmail.com",
        "protonmial.com": "protonmail.com",
        "protonmail.co": "protonmail.com",
    }
)

# Domains whose local part ignores dots and "+tag" suffixes
GMAIL_DOMAINS = frozenset(["gmail.com", "googlemail.com"])
