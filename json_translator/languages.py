import os
import re
from typing import Dict, List, Optional

# ISO 639-1 codes and their English names.
ISO_639_1_LANGUAGES: Dict[str, str] = {
    "aa": "Afar",
    "ab": "Abkhaz",
    "ae": "Avestan",
    "af": "Afrikaans",
    "ak": "Akan",
    "am": "Amharic",
    "an": "Aragonese",
    "ar": "Arabic",
    "as": "Assamese",
    "av": "Avaric",
    "ay": "Aymara",
    "az": "Azerbaijani",
    "ba": "Bashkir",
    "be": "Belarusian",
    "bg": "Bulgarian",
    "bi": "Bislama",
    "bm": "Bambara",
    "bn": "Bengali",
    "bo": "Tibetan",
    "br": "Breton",
    "bs": "Bosnian",
    "ca": "Catalan",
    "ce": "Chechen",
    "ch": "Chamorro",
    "co": "Corsican",
    "cr": "Cree",
    "cs": "Czech",
    "cu": "Old Church Slavonic",
    "cv": "Chuvash",
    "cy": "Welsh",
    "da": "Danish",
    "de": "German",
    "dv": "Divehi",
    "dz": "Dzongkha",
    "ee": "Ewe",
    "el": "Greek",
    "en": "English",
    "eo": "Esperanto",
    "es": "Spanish",
    "et": "Estonian",
    "eu": "Basque",
    "fa": "Persian",
    "ff": "Fula",
    "fi": "Finnish",
    "fj": "Fijian",
    "fo": "Faroese",
    "fr": "French",
    "fy": "Western Frisian",
    "ga": "Irish",
    "gd": "Scottish Gaelic",
    "gl": "Galician",
    "gn": "Guarani",
    "gu": "Gujarati",
    "gv": "Manx",
    "ha": "Hausa",
    "he": "Hebrew",
    "hi": "Hindi",
    "ho": "Hiri Motu",
    "hr": "Croatian",
    "ht": "Haitian",
    "hu": "Hungarian",
    "hy": "Armenian",
    "hz": "Herero",
    "ia": "Interlingua",
    "id": "Indonesian",
    "ie": "Interlingue",
    "ig": "Igbo",
    "ii": "Nuosu",
    "ik": "Inupiaq",
    "io": "Ido",
    "is": "Icelandic",
    "it": "Italian",
    "iu": "Inuktitut",
    "ja": "Japanese",
    "jv": "Javanese",
    "ka": "Georgian",
    "kg": "Kongo",
    "ki": "Kikuyu",
    "kj": "Kwanyama",
    "kk": "Kazakh",
    "kl": "Kalaallisut",
    "km": "Khmer",
    "kn": "Kannada",
    "ko": "Korean",
    "kr": "Kanuri",
    "ks": "Kashmiri",
    "ku": "Kurdish",
    "kv": "Komi",
    "kw": "Cornish",
    "ky": "Kyrgyz",
    "la": "Latin",
    "lb": "Luxembourgish",
    "lg": "Ganda",
    "li": "Limburgish",
    "ln": "Lingala",
    "lo": "Lao",
    "lt": "Lithuanian",
    "lu": "Luba-Katanga",
    "lv": "Latvian",
    "mg": "Malagasy",
    "mh": "Marshallese",
    "mi": "Maori",
    "mk": "Macedonian",
    "ml": "Malayalam",
    "mn": "Mongolian",
    "mr": "Marathi",
    "ms": "Malay",
    "mt": "Maltese",
    "my": "Burmese",
    "na": "Nauru",
    "nb": "Norwegian Bokmal",
    "nd": "Northern Ndebele",
    "ne": "Nepali",
    "ng": "Ndonga",
    "nl": "Dutch",
    "nn": "Norwegian Nynorsk",
    "no": "Norwegian",
    "nr": "Southern Ndebele",
    "nv": "Navajo",
    "ny": "Chichewa",
    "oc": "Occitan",
    "oj": "Ojibwe",
    "om": "Oromo",
    "or": "Oriya",
    "os": "Ossetian",
    "pa": "Punjabi",
    "pi": "Pali",
    "pl": "Polish",
    "ps": "Pashto",
    "pt": "Portuguese",
    "qu": "Quechua",
    "rm": "Romansh",
    "rn": "Kirundi",
    "ro": "Romanian",
    "ru": "Russian",
    "rw": "Kinyarwanda",
    "sa": "Sanskrit",
    "sc": "Sardinian",
    "sd": "Sindhi",
    "se": "Northern Sami",
    "sg": "Sango",
    "si": "Sinhala",
    "sk": "Slovak",
    "sl": "Slovenian",
    "sm": "Samoan",
    "sn": "Shona",
    "so": "Somali",
    "sq": "Albanian",
    "sr": "Serbian",
    "ss": "Swati",
    "st": "Southern Sotho",
    "su": "Sundanese",
    "sv": "Swedish",
    "sw": "Swahili",
    "ta": "Tamil",
    "te": "Telugu",
    "tg": "Tajik",
    "th": "Thai",
    "ti": "Tigrinya",
    "tk": "Turkmen",
    "tl": "Tagalog",
    "tn": "Tswana",
    "to": "Tonga",
    "tr": "Turkish",
    "ts": "Tsonga",
    "tt": "Tatar",
    "tw": "Twi",
    "ty": "Tahitian",
    "ug": "Uyghur",
    "uk": "Ukrainian",
    "ur": "Urdu",
    "uz": "Uzbek",
    "ve": "Venda",
    "vi": "Vietnamese",
    "vo": "Volapuk",
    "wa": "Walloon",
    "wo": "Wolof",
    "xh": "Xhosa",
    "yi": "Yiddish",
    "yo": "Yoruba",
    "za": "Zhuang",
    "zh": "Chinese",
    "zu": "Zulu",
}

_FILENAME_TOKEN_SPLIT = re.compile(r'[._-]')


def get_language_from_code(language_code: str, language_codes: Dict[str, str]) -> Optional[str]:
    """
    Convert a language code to a language name.

    Args:
        language_code (str): The language code (e.g., "cs").
        language_codes (Dict[str, str]): Mapping of supported codes to names.

    Returns:
        Optional[str]: The language name if found, else None.
    """
    return language_codes.get(language_code.lower(), None)


def language_name_to_code(language_name: str, name_to_code: Dict[str, str]) -> Optional[str]:
    """
    Convert a language name to a language code.

    Args:
        language_name (str): The language name (e.g., "Czech").
        name_to_code (Dict[str, str]): Mapping of lower-cased names to codes.

    Returns:
        Optional[str]: The language code if found, else None.
    """
    return name_to_code.get(language_name.lower(), None)


def get_language_code_from_filename(file_name_or_path: str, language_codes: Dict[str, str]) -> Optional[str]:
    """
    Extract the language code embedded in a filename.

    The filename stem is split on '.', '_' and '-'; the last token that is a
    supported code wins, so ``en.json``, ``app_en.json`` and ``messages.en.json``
    all resolve to ``en``. Directory names are ignored.

    Returns:
        Optional[str]: The language code if found, else None.
    """
    stem = os.path.splitext(os.path.basename(file_name_or_path))[0]
    for token in reversed(_FILENAME_TOKEN_SPLIT.split(stem)):
        if token.lower() in language_codes:
            return token.lower()
    return None


def get_language_from_filename(file_name_or_path: str, language_codes: Dict[str, str]) -> Optional[str]:
    """Return the language name for the code embedded in a filename, or None."""
    code = get_language_code_from_filename(file_name_or_path, language_codes)
    if code is None:
        return None
    return language_codes[code]


def replace_language_code_in_filename(file_name_or_path: str, source_code: str, target_code: str) -> str:
    """
    Swap ``source_code`` for ``target_code`` in the filename part of a path.

    Only the last stem token equal to ``source_code`` is replaced; directories
    and the extension are left untouched.
    """
    directory, filename = os.path.split(file_name_or_path)
    stem, extension = os.path.splitext(filename)
    tokens = _FILENAME_TOKEN_SPLIT.split(stem)
    separators = _FILENAME_TOKEN_SPLIT.findall(stem)
    for index in range(len(tokens) - 1, -1, -1):
        if tokens[index].lower() == source_code.lower():
            tokens[index] = target_code
            break
    rebuilt = tokens[0] + "".join(sep + token for sep, token in zip(separators, tokens[1:]))
    return os.path.join(directory, rebuilt + extension) if directory else rebuilt + extension


def get_all_language_codes(language_codes: Dict[str, str]) -> List[str]:
    """Return every supported language code in sorted order."""
    return sorted(language_codes.keys())
